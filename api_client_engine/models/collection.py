"""
Collection model for the collection/folder tree.

Root collections own collection-scoped variables; folders nest under
a root collection (or under other folders) and borrow its variables.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base

KIND_COLLECTION = "collection"
KIND_FOLDER = "folder"


class Collection(Base):
    """
    SQLAlchemy model for collection tree nodes.

    Attributes:
        id: Unique identifier for the node
        name: Human-readable name
        kind: ``collection`` for a root collection, ``folder`` for a nested folder
        parent_id: Parent node for folders; None for root collections
        variables: JSON list of variable entries (meaningful on root collections)
        created_at: Timestamp when the node was created
        updated_at: Timestamp when the node was last updated
    """
    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(20), default=KIND_COLLECTION)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=True
    )
    variables: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_root(self) -> bool:
        return self.kind == KIND_COLLECTION

"""
Environment model for storing environment-scoped variables.

Environments hold variables that can be substituted into requests,
allowing the same request templates to work across different environments
(e.g., development, staging, production).
"""

from datetime import datetime

from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class Environment(Base):
    """
    SQLAlchemy model for environments.

    Variables are stored on the environment row itself as a JSON list of
    ``{"key", "value", "enabled", "type"}`` objects, so a scope can be
    read, merged and written back as a single record.

    Attributes:
        id: Unique identifier for the environment
        name: Human-readable name for the environment
        variables: Ordered list of variable entries
        created_at: Timestamp when the environment was created
        updated_at: Timestamp when the environment was last updated
    """
    __tablename__ = "environments"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    variables: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

"""
Variable store service for reading and patching variable scopes.

Provides:
- The ``VariableStore`` interface the execution pipeline depends on
- A SQLAlchemy-backed implementation over environments and collections
- The bounded folder-to-root walk used for collection scopes
- The pure merge applied by every patch
"""

from typing import Callable, Optional, Protocol

from loguru import logger
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.collection import Collection
from ..models.environment import Environment
from ..schemas.variables import ScopeKind, VariableCollection, VariableEntry, VariableUpdates


class VariableStore(Protocol):
    """Persistent backing store for environment and collection variables."""

    def get(self, scope_kind: ScopeKind, scope_id: int) -> Optional[VariableCollection]:
        ...

    def patch(self, scope_kind: ScopeKind, scope_id: int, updates: VariableUpdates) -> None:
        ...


def apply_updates(entries: list[VariableEntry], updates: VariableUpdates) -> list[VariableEntry]:
    """
    Merge script updates into a list of variable entries.

    Args:
        entries: Current entries of the scope; not modified
        updates: Key -> new value, or None to remove the key

    Returns:
        A new entry list. Existing keys keep their position, enabled flag and
        type; new keys are appended as enabled, plain entries.
    """
    merged = [entry.model_copy() for entry in entries]

    for key, value in updates.items():
        if value is None:
            merged = [entry for entry in merged if entry.key != key]
            continue

        found = False
        for entry in merged:
            if entry.key == key:
                entry.value = value
                found = True
        if not found:
            merged.append(VariableEntry(key=key, value=value, enabled=True, type="default"))

    return merged


def find_root_collection(db: Session, node_id: int, max_depth: int) -> Optional[Collection]:
    """
    Find the root collection that owns a collection-tree node.

    Walks parent links from ``node_id`` until a node of kind ``collection``
    is reached. The walk gives up (returning None) when a parent is missing,
    when a node repeats, or after ``max_depth`` hops.
    """
    node = db.get(Collection, node_id)
    visited: set[int] = set()

    while node is not None:
        if node.is_root:
            return node

        if node.id in visited or len(visited) >= max_depth:
            logger.warning(
                f"Stopped looking for the root of collection node {node_id} "
                f"after {len(visited)} folders"
            )
            return None
        visited.add(node.id)

        if node.parent_id is None:
            return None
        node = db.get(Collection, node.parent_id)

    return None


def _entries_of(record) -> list[VariableEntry]:
    return [VariableEntry.model_validate(item) for item in (record.variables or [])]


class SqlVariableStore:
    """
    ``VariableStore`` backed by the ``environments`` and ``collections`` tables.

    Every call opens its own session, so collections are always read fresh.
    """

    def __init__(self, session_factory: Callable[[], Session], max_depth: int | None = None):
        self.session_factory = session_factory
        self.max_depth = max_depth if max_depth is not None else get_settings().MAX_FOLDER_DEPTH

    def _load(self, db: Session, scope_kind: ScopeKind, scope_id: int, lock: bool = False):
        if scope_kind == "environment":
            return db.get(Environment, scope_id, with_for_update=lock)

        root = find_root_collection(db, scope_id, self.max_depth)
        if root is not None and lock:
            db.refresh(root, with_for_update=True)
        return root

    def get(self, scope_kind: ScopeKind, scope_id: int) -> Optional[VariableCollection]:
        with self.session_factory() as db:
            record = self._load(db, scope_kind, scope_id)
            if record is None:
                return None
            return VariableCollection(
                scope_kind=scope_kind,
                scope_id=record.id,
                name=record.name,
                variables=_entries_of(record),
            )

    def patch(self, scope_kind: ScopeKind, scope_id: int, updates: VariableUpdates) -> None:
        if not updates:
            return

        # Read, merge and write inside one transaction
        with self.session_factory() as db, db.begin():
            record = self._load(db, scope_kind, scope_id, lock=True)
            if record is None:
                logger.warning(f"Cannot update variables: {scope_kind} {scope_id} not found")
                return
            merged = apply_updates(_entries_of(record), updates)
            record.variables = [entry.model_dump() for entry in merged]

"""
Pydantic schemas for variable scopes.

Defines variable entries, the collections that hold them, and the update
map produced by scripts and consumed by the variable store.
"""

from typing import Literal

from pydantic import BaseModel


ScopeKind = Literal["environment", "collection"]
VariableType = Literal["default", "secret"]

# Key -> new value; None is an explicit unset
VariableUpdates = dict[str, str | None]


class VariableEntry(BaseModel):
    """A single named variable. ``type`` only affects display, never resolution."""
    key: str
    value: str = ""
    enabled: bool = True
    type: VariableType = "default"


class VariableCollection(BaseModel):
    """The variables of one environment or (root) collection."""
    scope_kind: ScopeKind
    scope_id: int
    name: str = ""
    variables: list[VariableEntry] = []

"""
Models package for the API client engine.

Exports all SQLAlchemy models for database operations.
"""

from .collection import Collection, KIND_COLLECTION, KIND_FOLDER
from .environment import Environment

__all__ = [
    "Collection",
    "Environment",
    "KIND_COLLECTION",
    "KIND_FOLDER",
]

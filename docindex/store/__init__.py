"""In-memory collection store."""

from docindex.store.collection import Collection
from docindex.store.database import Database

__all__ = [
    "Collection",
    "Database",
]

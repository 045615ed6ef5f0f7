"""Vector search module."""

from docindex.search.executor import VectorSearchExecutor
from docindex.search.models import SearchHit

__all__ = [
    "SearchHit",
    "VectorSearchExecutor",
]

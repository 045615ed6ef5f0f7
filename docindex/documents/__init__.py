"""Document records stored in collections."""

from docindex.documents.models import Document

__all__ = [
    "Document",
]

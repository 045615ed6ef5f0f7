"""Scalar and vector index structures."""

from docindex.indexes.base import Index
from docindex.indexes.models import (
    IndexInfo,
    IndexKind,
    IndexStats,
    ScalarIndexDefinition,
    Similarity,
    VectorIndexDefinition,
)
from docindex.indexes.scalar import ScalarIndex
from docindex.indexes.vector import VectorIndex

__all__ = [
    "Index",
    "IndexInfo",
    "IndexKind",
    "IndexStats",
    "ScalarIndex",
    "ScalarIndexDefinition",
    "Similarity",
    "VectorIndex",
    "VectorIndexDefinition",
]

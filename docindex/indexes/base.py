"""Index interface shared by scalar and vector indexes."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from docindex.documents.models import Document
from docindex.indexes.models import (
    IndexInfo,
    IndexStats,
    ScalarIndexDefinition,
    VectorIndexDefinition,
)


class Index(ABC):
    """Abstract base class for collection indexes.

    Writers call ``prepare`` for every changed document first, so that an
    invalid document rejects the whole write before any index is touched,
    then hand the prepared entries to ``apply``. Both run under the owning
    collection's write lock.
    """

    def __init__(
        self,
        name: str,
        definition: ScalarIndexDefinition | VectorIndexDefinition,
        created_at: datetime | None = None,
    ) -> None:
        self.name = name
        self.definition = definition
        self.created_at = created_at or datetime.now(UTC)

    @abstractmethod
    def build(self, documents: Iterable[Document]) -> None:
        """Index existing documents, skipping non-conforming ones.

        Args:
            documents: Current contents of the collection.
        """
        ...

    @abstractmethod
    def prepare(self, document: Document) -> Any:
        """Compute the index entry for a document.

        Args:
            document: Document about to be written.

        Returns:
            Opaque entry for ``apply``; None when the document is not indexed.

        Raises:
            DimensionMismatchError: If an embedding has the wrong length.
        """
        ...

    @abstractmethod
    def apply(self, changes: Sequence[tuple[str, Any]]) -> None:
        """Apply prepared entries; an entry of None removes the document.

        Args:
            changes: ``(document id, entry)`` pairs.
        """
        ...

    @abstractmethod
    def stats(self) -> IndexStats:
        """Return current index statistics."""
        ...

    def info(self, collection: str) -> IndexInfo:
        """Describe this index for the admin surface."""
        return IndexInfo(
            collection=collection,
            name=self.name,
            definition=self.definition,
            created_at=self.created_at,
            stats=self.stats(),
        )

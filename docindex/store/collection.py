"""In-memory document collection with index maintenance."""

import re
import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from docindex.documents.models import Document
from docindex.exceptions import ErrorCode, ValidationError
from docindex.filters import compile_filter, field_range, sort_key
from docindex.indexes.base import Index
from docindex.indexes.scalar import ScalarIndex
from docindex.indexes.vector import VectorIndex
from docindex.logging_config import get_logger

logger = get_logger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")


def validate_name(name: str, kind: str = "collection") -> str:
    """Reject names that cannot be used as catalog keys.

    Raises:
        ValidationError: If the name is empty or contains unsupported characters.
    """
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid {kind} name: {name!r}",
            details={kind: name},
        )
    return name


def _set_path(data: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


class Collection:
    """A named set of documents plus the indexes defined on it.

    Writes serialize on the collection lock and update every index before
    the lock is released. The index registry is replaced, never mutated, so
    readers holding a reference to it are unaffected by create or drop.
    """

    def __init__(self, name: str) -> None:
        self.name = validate_name(name)
        self._docs: dict[str, Document] = {}
        self._indexes: dict[str, Index] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def indexes(self) -> Mapping[str, Index]:
        return self._indexes

    def vector_index_for(self, field: str) -> VectorIndex | None:
        """Return the vector index covering ``field``, if any."""
        for index in self._indexes.values():
            if isinstance(index, VectorIndex) and index.field == field:
                return index
        return None

    # Index registry

    def attach_index(self, index: Index) -> None:
        """Build ``index`` over the current documents and register it."""
        with self._lock:
            index.build(self._docs.values())
            self._indexes = {**self._indexes, index.name: index}

    def detach_index(self, name: str) -> Index | None:
        with self._lock:
            registry = dict(self._indexes)
            index = registry.pop(name, None)
            self._indexes = registry
            return index

    # Reads

    def __len__(self) -> int:
        return len(self._docs)

    def get(self, doc_id: str) -> Document | None:
        return self._docs.get(doc_id)

    def count_documents(self, filter: Mapping[str, Any] | None = None) -> int:
        if not filter:
            return len(self._docs)
        return len(self.find(filter))

    def find(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: Sequence[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """Return documents matching ``filter``.

        A scalar index whose leading field is constrained by the filter
        narrows the candidates; every candidate is still checked against
        the full filter.
        """
        predicate = compile_filter(filter)
        with self._lock:
            candidates = self._candidates(filter)
            results = [doc for doc in candidates if predicate(doc.data)]

        if sort:
            for path, direction in reversed(sort):
                results.sort(key=lambda d, p=path: sort_key(d.get(p)), reverse=direction == -1)
        if limit is not None:
            results = results[:limit]
        return results

    def _candidates(self, filter: Mapping[str, Any] | None) -> Iterable[Document]:
        for index in self._indexes.values():
            if not isinstance(index, ScalarIndex):
                continue
            key_range = field_range(filter, index.leading_field)
            if key_range is None or (index.multikey and not key_range.is_point):
                continue
            ids = index.lookup(key_range)
            logger.debug(
                f"Using index {index.name} for find",
                extra={"collection": self.name, "index": index.name, "candidates": len(ids)},
            )
            return [self._docs[i] for i in ids if i in self._docs]
        return list(self._docs.values())

    # Writes

    def insert_many(
        self,
        documents: Iterable[Document],
        skip_existing: bool = True,
    ) -> list[Document]:
        """Insert new documents.

        Args:
            documents: Documents to insert.
            skip_existing: Silently skip ids already present; when False an
                existing id is a ValidationError.

        Returns:
            The documents actually inserted.
        """
        with self._lock:
            fresh: list[Document] = []
            seen: set[str] = set()
            for document in documents:
                if document.id in self._docs or document.id in seen:
                    if skip_existing:
                        continue
                    raise ValidationError(
                        f"Duplicate document id: {document.id}",
                        code=ErrorCode.VALIDATION_ERROR,
                        details={"collection": self.name, "id": document.id},
                    )
                seen.add(document.id)
                fresh.append(document.model_copy(deep=True))
            if not fresh:
                logger.info(
                    "Nothing to insert",
                    extra={"collection": self.name},
                )
                return []
            self._write(fresh, [])
        logger.info(
            f"{len(fresh)} documents inserted",
            extra={"collection": self.name, "count": len(fresh)},
        )
        return fresh

    def upsert_many(self, documents: Iterable[Document]) -> int:
        """Insert or replace documents by id."""
        latest = {doc.id: doc.model_copy(deep=True) for doc in documents}
        if not latest:
            return 0
        with self._lock:
            self._write(list(latest.values()), [])
        logger.debug(
            f"{len(latest)} documents upserted",
            extra={"collection": self.name},
        )
        return len(latest)

    def upsert(self, document: Document) -> Document:
        self.upsert_many([document])
        return self._docs[document.id]

    def update_many(self, filter: Mapping[str, Any] | None, set_fields: Mapping[str, Any]) -> int:
        """Set fields on every matching document; returns the match count."""
        if not set_fields:
            raise ValidationError(
                "Update requires at least one field",
                details={"collection": self.name},
            )
        with self._lock:
            updated: list[Document] = []
            for document in self.find(filter):
                data = document.model_copy(deep=True).data
                for path, value in set_fields.items():
                    _set_path(data, path, value)
                updated.append(Document(id=document.id, data=data))
            if updated:
                self._write(updated, [])
        logger.info(
            f"{len(updated)} documents updated",
            extra={"collection": self.name, "count": len(updated)},
        )
        return len(updated)

    def delete_many(self, filter: Mapping[str, Any] | None = None) -> int:
        """Delete matching documents; an empty filter deletes everything."""
        with self._lock:
            ids = [doc.id for doc in self.find(filter)]
            if ids:
                self._write([], ids)
        logger.info(
            f"{len(ids)} documents deleted",
            extra={"collection": self.name, "count": len(ids)},
        )
        return len(ids)

    def _write(self, documents: list[Document], removed_ids: list[str]) -> None:
        """Validate against every index first, then apply everywhere."""
        indexes = list(self._indexes.values())
        prepared: dict[str, list[tuple[str, Any]]] = {}
        for index in indexes:
            changes = [(doc.id, index.prepare(doc)) for doc in documents]
            changes.extend((doc_id, None) for doc_id in removed_ids)
            prepared[index.name] = changes

        for document in documents:
            self._docs[document.id] = document
        for doc_id in removed_ids:
            self._docs.pop(doc_id, None)
        for index in indexes:
            index.apply(prepared[index.name])

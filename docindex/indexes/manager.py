"""Index administration: create, drop, list and rebuild named indexes."""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from docindex.catalog import CatalogEntry, CollectionCatalog, IndexCatalog
from docindex.config import SearchSettings, get_settings
from docindex.exceptions import (
    CatalogError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from docindex.indexes.base import Index
from docindex.indexes.models import (
    IndexInfo,
    ScalarIndexDefinition,
    VectorIndexDefinition,
    parse_definition,
    vector_definition,
)
from docindex.indexes.scalar import ScalarIndex
from docindex.indexes.vector import VectorIndex
from docindex.logging_config import get_logger
from docindex.observability.metrics import track_index_operation, update_index_entries
from docindex.store.collection import Collection, validate_name
from docindex.store.database import Database

logger = get_logger(__name__)

Definition = ScalarIndexDefinition | VectorIndexDefinition


def make_index(
    name: str,
    definition: Definition,
    settings: SearchSettings | None = None,
    created_at: datetime | None = None,
) -> Index:
    """Instantiate the structure matching a definition."""
    if isinstance(definition, VectorIndexDefinition):
        return VectorIndex(name, definition, settings=settings, created_at=created_at)
    return ScalarIndex(name, definition, created_at=created_at)


class IndexManager:
    """Creates and drops indexes and keeps the catalog in step.

    Catalog writes happen before the in-memory change is published, so a
    failed write leaves both sides as they were. Create, drop and rebuild
    hold one admin lock per collection from the conflict checks through
    the catalog write and the registry swap, so concurrent calls on the
    same collection (same index name or not) apply one at a time.
    """

    def __init__(
        self,
        database: Database,
        catalog: IndexCatalog | None = None,
        settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the index manager.

        Args:
            database: Collections the indexes belong to.
            catalog: Durable metadata store (in-memory when omitted).
            settings: Search settings passed to vector indexes.
        """
        self._database = database
        self._catalog = catalog or IndexCatalog(None)
        self._settings = settings or get_settings().search
        self._admin_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def database(self) -> Database:
        return self._database

    def _admin_lock(self, collection: str) -> threading.Lock:
        with self._locks_guard:
            return self._admin_locks.setdefault(collection, threading.Lock())

    @contextmanager
    def _tracked(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except Exception:
            track_index_operation(operation, time.perf_counter() - start, success=False)
            raise
        track_index_operation(operation, time.perf_counter() - start)

    def _catalog_for(self, collection: Collection, registry: dict[str, Index]) -> CollectionCatalog:
        return CollectionCatalog(
            collection=collection.name,
            indexes=[
                CatalogEntry(name=i.name, definition=i.definition, created_at=i.created_at)
                for i in registry.values()
            ],
        )

    def create_index(
        self,
        collection: str,
        name: str,
        definition: Definition | dict[str, Any],
    ) -> IndexInfo:
        """Create a named index, or return it unchanged if it already exists.

        Args:
            collection: Collection name (created if missing).
            name: Index name, unique within the collection.
            definition: Scalar or vector definition, or its raw mapping.

        Returns:
            Description of the (new or existing) index.

        Raises:
            ValidationError: If the name or definition is invalid.
            ConflictError: If the name is taken by a different definition, or
                the field already has a vector index.
        """
        validate_name(name, kind="index")
        if isinstance(definition, dict):
            definition = parse_definition(definition)

        with self._tracked("create"), self._admin_lock(collection):
            coll = self._database.collection(collection)
            existing = coll.indexes.get(name)
            if existing is not None:
                if existing.definition == definition:
                    logger.info(
                        f"Index already exists: {name}",
                        extra={"collection": collection, "index": name},
                    )
                    return existing.info(collection)
                raise ConflictError(
                    f"Index {name} already exists with a different definition",
                    details={
                        "collection": collection,
                        "index": name,
                        "existing": existing.definition.model_dump(mode="json"),
                        "requested": definition.model_dump(mode="json"),
                    },
                )

            if isinstance(definition, VectorIndexDefinition):
                other = coll.vector_index_for(definition.field)
                if other is not None:
                    raise ConflictError(
                        f"Field {definition.field} already has vector index {other.name}",
                        details={
                            "collection": collection,
                            "index": name,
                            "field": definition.field,
                            "existing_index": other.name,
                        },
                    )

            index = make_index(name, definition, settings=self._settings)
            self._catalog.save(self._catalog_for(coll, {**coll.indexes, name: index}))
            coll.attach_index(index)

            info = index.info(collection)
            update_index_entries(collection, name, info.stats.entries)
            logger.info(
                f"Created index: {name}",
                extra={
                    "collection": collection,
                    "index": name,
                    "kind": definition.kind,
                    "entries": info.stats.entries,
                    "skipped": info.stats.skipped,
                },
            )
            return info

    def drop_index(self, collection: str, name: str) -> None:
        """Drop a named index.

        Raises:
            NotFoundError: If the collection or the index does not exist.
        """
        with self._tracked("drop"), self._admin_lock(collection):
            coll = self._database.collection(collection, create=False)
            if name not in coll.indexes:
                raise NotFoundError(
                    f"Index not found: {name}",
                    details={"collection": collection, "index": name},
                )
            remaining = {k: v for k, v in coll.indexes.items() if k != name}
            self._catalog.save(self._catalog_for(coll, remaining))
            coll.detach_index(name)
            update_index_entries(collection, name, None)
            logger.info(f"Dropped index: {name}", extra={"collection": collection})

    def drop_collection(self, collection: str) -> None:
        """Drop a collection together with its catalog entries.

        Raises:
            NotFoundError: If the collection does not exist.
        """
        with self._tracked("drop_collection"), self._admin_lock(collection):
            coll = self._database.collection(collection, create=False)
            self._catalog.save(CollectionCatalog(collection=collection))
            self._database.drop_collection(collection)
            for name in coll.indexes:
                update_index_entries(collection, name, None)

    def get_index(self, collection: str, name: str) -> IndexInfo:
        """Describe one index.

        Raises:
            NotFoundError: If the collection or the index does not exist.
        """
        coll = self._database.collection(collection, create=False)
        index = coll.indexes.get(name)
        if index is None:
            raise NotFoundError(
                f"Index not found: {name}",
                details={"collection": collection, "index": name},
            )
        return index.info(collection)

    def list_indexes(self, collection: str) -> list[IndexInfo]:
        """Describe all indexes of a collection in creation order.

        Raises:
            NotFoundError: If the collection does not exist.
        """
        coll = self._database.collection(collection, create=False)
        return [index.info(collection) for index in coll.indexes.values()]

    def rebuild_index(
        self,
        collection: str,
        name: str,
        num_lists: int | None = None,
    ) -> IndexInfo:
        """Rebuild an index from the current documents.

        A new structure is built and swapped in; searches already running
        finish on the previous one.

        Args:
            collection: Collection name.
            name: Index name.
            num_lists: New IVF partition count (vector indexes only).

        Raises:
            NotFoundError: If the collection or the index does not exist.
            ValidationError: If ``num_lists`` is invalid or given for a scalar index.
        """
        with self._tracked("rebuild"), self._admin_lock(collection):
            coll = self._database.collection(collection, create=False)
            existing = coll.indexes.get(name)
            if existing is None:
                raise NotFoundError(
                    f"Index not found: {name}",
                    details={"collection": collection, "index": name},
                )

            definition = existing.definition
            if num_lists is not None:
                if not isinstance(definition, VectorIndexDefinition):
                    raise ValidationError(
                        "num_lists applies to vector indexes only",
                        details={"collection": collection, "index": name},
                    )
                definition = vector_definition(
                    field=definition.field,
                    dimensions=definition.dimensions,
                    similarity=definition.similarity,
                    num_lists=num_lists,
                )

            index = make_index(
                name, definition, settings=self._settings, created_at=existing.created_at
            )
            if definition != existing.definition:
                self._catalog.save(self._catalog_for(coll, {**coll.indexes, name: index}))
            coll.attach_index(index)

            info = index.info(collection)
            update_index_entries(collection, name, info.stats.entries)
            logger.info(
                f"Rebuilt index: {name}",
                extra={"collection": collection, "index": name, "entries": info.stats.entries},
            )
            return info

    def restore(self) -> int:
        """Recreate every index recorded in the catalog.

        Returns:
            Number of indexes restored.

        Raises:
            CatalogError: If a stored definition is no longer valid.
        """
        restored = 0
        with self._tracked("restore"):
            for catalog in self._catalog.load():
                coll = self._database.collection(catalog.collection)
                for entry in catalog.indexes:
                    try:
                        definition = parse_definition(entry.definition.model_dump(mode="json"))
                    except ValidationError as e:
                        raise CatalogError(
                            f"Invalid stored definition for {entry.name}: {e.message}",
                            code=ErrorCode.CATALOG_CORRUPT,
                            details={"collection": catalog.collection, "index": entry.name},
                        ) from e
                    index = make_index(
                        entry.name,
                        definition,
                        settings=self._settings,
                        created_at=entry.created_at,
                    )
                    coll.attach_index(index)
                    restored += 1
        if restored:
            logger.info(f"Restored {restored} indexes from catalog")
        return restored

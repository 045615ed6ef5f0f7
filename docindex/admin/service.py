"""Administrative surface over collections, indexes and search."""

from collections.abc import Mapping, Sequence
from typing import Any

from docindex.admin.commands import (
    command_name,
    parse_index_spec,
    require_collection,
)
from docindex.catalog import IndexCatalog
from docindex.config import Settings, get_settings
from docindex.documents.models import Document
from docindex.exceptions import DocIndexError, ErrorCode, NotFoundError, ValidationError
from docindex.indexes.manager import IndexManager
from docindex.indexes.models import IndexInfo, Similarity, scalar_definition, vector_definition
from docindex.logging_config import get_logger
from docindex.search.executor import VectorSearchExecutor
from docindex.search.models import SearchHit
from docindex.store.database import Database

logger = get_logger(__name__)


class AdminService:
    """Entry point used by the HTTP API and the schema script."""

    def __init__(
        self,
        database: Database,
        manager: IndexManager,
        executor: VectorSearchExecutor,
    ) -> None:
        self.database = database
        self.manager = manager
        self.executor = executor

    # Collections and documents

    def count_documents(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
    ) -> int:
        """Count documents; a collection that does not exist counts 0."""
        coll = self.database.get(collection)
        if coll is None:
            return 0
        return coll.count_documents(filter)

    def insert_documents(
        self,
        collection: str,
        documents: Sequence[Document],
        skip_existing: bool = True,
    ) -> list[Document]:
        return self.database.collection(collection).insert_many(
            documents, skip_existing=skip_existing
        )

    def upsert_document(self, collection: str, document: Document) -> Document:
        return self.database.collection(collection).upsert(document)

    def get_document(self, collection: str, doc_id: str) -> Document:
        """Fetch one document.

        Raises:
            NotFoundError: If the collection or document does not exist.
        """
        coll = self.database.collection(collection, create=False)
        document = coll.get(doc_id)
        if document is None:
            raise NotFoundError(
                f"Document not found: {doc_id}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"collection": collection, "id": doc_id},
            )
        return document

    def delete_documents(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
    ) -> int:
        coll = self.database.get(collection)
        if coll is None:
            return 0
        return coll.delete_many(filter)

    def drop_collection(self, collection: str) -> None:
        """Drop a collection, its documents and its persisted indexes.

        Raises:
            NotFoundError: If the collection does not exist.
        """
        self.manager.drop_collection(collection)

    # Indexes

    def create_vector_index(
        self,
        collection: str,
        name: str,
        field: str,
        dimensions: int,
        similarity: str | Similarity = Similarity.COS,
        num_lists: int = 1,
    ) -> IndexInfo:
        definition = vector_definition(
            field=field,
            dimensions=dimensions,
            similarity=similarity,
            num_lists=num_lists,
        )
        return self.manager.create_index(collection, name, definition)

    def create_scalar_index(
        self,
        collection: str,
        keys: dict[str, int] | list[tuple[str, int]],
        name: str | None = None,
    ) -> IndexInfo:
        """Create a scalar index; the default name follows ``url_1_updated_1``."""
        definition = scalar_definition(keys)
        return self.manager.create_index(collection, name or definition.default_name(), definition)

    def drop_index(self, collection: str, name: str) -> None:
        self.manager.drop_index(collection, name)

    def list_indexes(self, collection: str) -> list[IndexInfo]:
        return self.manager.list_indexes(collection)

    def get_index(self, collection: str, name: str) -> IndexInfo:
        return self.manager.get_index(collection, name)

    def rebuild_index(
        self,
        collection: str,
        name: str,
        num_lists: int | None = None,
    ) -> IndexInfo:
        return self.manager.rebuild_index(collection, name, num_lists=num_lists)

    # Search

    def search(
        self,
        collection: str,
        field: str,
        query_vector: Sequence[float],
        k: int | None = None,
        similarity: str | Similarity | None = None,
        scalar_filter: Mapping[str, Any] | None = None,
        min_score: float | None = None,
        nprobe: int | None = None,
        fields: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        return self.executor.search(
            collection,
            field,
            query_vector,
            k=k,
            similarity=similarity,
            scalar_filter=scalar_filter,
            min_score=min_score,
            nprobe=nprobe,
            fields=fields,
        )

    # Shell commands

    def run_command(self, command: Mapping[str, Any]) -> dict[str, Any]:
        """Execute one database-shell style command document.

        Supported: ``createIndexes``, ``dropIndexes``, ``listIndexes``,
        ``count`` and ``drop``.

        Raises:
            ValidationError: If the command is unknown or malformed.
        """
        name = command_name(command)
        logger.info(f"Running command: {name}", extra={"command": name})
        if name == "createIndexes":
            return self._create_indexes(command)
        if name == "dropIndexes":
            collection = require_collection(command, name)
            before = len(self.manager.list_indexes(collection))
            index = command.get("index")
            if not isinstance(index, str) or not index:
                raise ValidationError(
                    "'dropIndexes' requires an 'index' name",
                    details={"command": name},
                )
            self.drop_index(collection, index)
            return {"ok": 1, "nIndexesWas": before}
        if name == "listIndexes":
            collection = require_collection(command, name)
            return {
                "ok": 1,
                "indexes": [
                    info.model_dump(mode="json") for info in self.list_indexes(collection)
                ],
            }
        if name == "drop":
            collection = require_collection(command, name)
            indexes = len(self.manager.list_indexes(collection))
            self.drop_collection(collection)
            return {"ok": 1, "ns": f"{self.database.name}.{collection}", "nIndexesWas": indexes}
        collection = require_collection(command, name)
        return {"ok": 1, "n": self.count_documents(collection, command.get("query"))}

    def _create_indexes(self, command: Mapping[str, Any]) -> dict[str, Any]:
        collection = require_collection(command, "createIndexes")
        specs = command.get("indexes")
        if not isinstance(specs, list) or not specs:
            raise ValidationError(
                "'createIndexes' requires a non-empty 'indexes' list",
                details={"collection": collection},
            )

        # Parse everything up front so a bad spec changes nothing.
        parsed = [parse_index_spec(spec) for spec in specs]

        created_collection = not self.database.has_collection(collection)
        existing = self.database.get(collection)
        before_names = set(existing.indexes) if existing is not None else set()

        created: list[str] = []
        try:
            for index_name, definition in parsed:
                self.manager.create_index(collection, index_name, definition)
                if index_name not in before_names:
                    created.append(index_name)
        except DocIndexError:
            for index_name in reversed(created):
                self.manager.drop_index(collection, index_name)
            raise

        after = len(self.database.collection(collection).indexes)
        return {
            "ok": 1,
            "createdCollectionAutomatically": created_collection,
            "numIndexesBefore": len(before_names),
            "numIndexesAfter": after,
        }


def build_admin_service(settings: Settings | None = None) -> AdminService:
    """Wire a database, index manager and executor from settings.

    Indexes recorded in the catalog are restored before returning.
    """
    settings = settings or get_settings()
    database = Database(settings.storage.database)
    catalog = IndexCatalog(settings.storage.data_dir, settings.storage.database)
    manager = IndexManager(database, catalog=catalog, settings=settings.search)
    executor = VectorSearchExecutor(database, settings=settings.search)
    manager.restore()
    return AdminService(database, manager, executor)

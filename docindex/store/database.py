"""Named collections of one database."""

import threading

from docindex.exceptions import ErrorCode, NotFoundError
from docindex.logging_config import get_logger
from docindex.store.collection import Collection

logger = get_logger(__name__)


class Database:
    """Registry of collections.

    Collections are created on first use, as with the document database
    this mirrors.
    """

    def __init__(self, name: str = "beansack") -> None:
        self.name = name
        self._collections: dict[str, Collection] = {}
        self._lock = threading.Lock()

    def collection(self, name: str, create: bool = True) -> Collection:
        """Get a collection, creating it when ``create`` is set.

        Raises:
            NotFoundError: If the collection is absent and ``create`` is False.
        """
        existing = self._collections.get(name)
        if existing is not None:
            return existing
        if not create:
            raise NotFoundError(
                f"Collection not found: {name}",
                code=ErrorCode.COLLECTION_NOT_FOUND,
                details={"collection": name},
            )
        with self._lock:
            existing = self._collections.get(name)
            if existing is None:
                existing = Collection(name)
                self._collections = {**self._collections, name: existing}
                logger.info(f"Created collection: {name}", extra={"database": self.name})
            return existing

    def get(self, name: str) -> Collection | None:
        """Return the collection if it exists, without creating it."""
        return self._collections.get(name)

    def has_collection(self, name: str) -> bool:
        return name in self._collections

    def list_collections(self) -> list[str]:
        return sorted(self._collections)

    def drop_collection(self, name: str) -> None:
        """Remove a collection with its documents and in-memory indexes.

        The catalog is not touched; ``IndexManager.drop_collection`` clears both.

        Raises:
            NotFoundError: If the collection does not exist.
        """
        with self._lock:
            if name not in self._collections:
                raise NotFoundError(
                    f"Collection not found: {name}",
                    code=ErrorCode.COLLECTION_NOT_FOUND,
                    details={"collection": name},
                )
            registry = dict(self._collections)
            del registry[name]
            self._collections = registry
        logger.info(f"Dropped collection: {name}", extra={"database": self.name})

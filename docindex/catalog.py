"""Durable index metadata.

Each collection's index definitions live in one JSON file next to the
collection's name under ``<data_dir>/<database>/``:

    {
        "collection": "beans",
        "indexes": [
            {
                "name": "wholebeans_vec_search",
                "definition": {"kind": "vector", "field": "embeddings", ...},
                "created_at": "2024-05-01T12:00:00+00:00"
            }
        ]
    }

Files are replaced atomically so a crash never leaves a half-written
catalog. Without a data directory the catalog is a no-op.
"""

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from docindex.exceptions import CatalogError, ErrorCode
from docindex.indexes.models import ScalarIndexDefinition, VectorIndexDefinition
from docindex.logging_config import get_logger

logger = get_logger(__name__)

_SUFFIX = ".indexes.json"


class CatalogEntry(BaseModel):
    """Persisted description of one index."""

    name: str = Field(description="Index name")
    definition: ScalarIndexDefinition | VectorIndexDefinition = Field(
        discriminator="kind",
        description="Index definition",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the index was created",
    )


class CollectionCatalog(BaseModel):
    """All persisted indexes of one collection."""

    collection: str = Field(description="Collection name")
    indexes: list[CatalogEntry] = Field(
        default_factory=list,
        description="Index entries in creation order",
    )


class IndexCatalog:
    """Reads and writes per-collection index metadata files."""

    def __init__(self, data_dir: Path | str | None, database: str = "beansack") -> None:
        """Initialize the catalog.

        Args:
            data_dir: Root directory; None keeps metadata in memory only.
            database: Database name, used as a subdirectory.
        """
        self._root = Path(data_dir) / database if data_dir is not None else None

    @property
    def durable(self) -> bool:
        return self._root is not None

    def load(self) -> list[CollectionCatalog]:
        """Load every collection catalog under the data directory.

        Raises:
            CatalogError: If a file cannot be read or fails validation.
        """
        if self._root is None or not self._root.exists():
            return []

        catalogs: list[CollectionCatalog] = []
        for path in sorted(self._root.glob(f"*{_SUFFIX}")):
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise CatalogError(
                    f"Invalid JSON in catalog file: {e}",
                    code=ErrorCode.CATALOG_CORRUPT,
                    details={"path": str(path)},
                ) from e
            except OSError as e:
                raise CatalogError(
                    f"Failed to read catalog file: {e}",
                    details={"path": str(path)},
                ) from e

            try:
                catalog = CollectionCatalog.model_validate(data)
            except ValueError as e:
                raise CatalogError(
                    f"Invalid catalog schema: {e}",
                    code=ErrorCode.CATALOG_CORRUPT,
                    details={"path": str(path)},
                ) from e
            catalogs.append(catalog)

        logger.info(
            f"Loaded index catalog from {self._root}",
            extra={"collections": len(catalogs)},
        )
        return catalogs

    def save(self, catalog: CollectionCatalog) -> None:
        """Persist one collection's indexes, removing the file when empty.

        Raises:
            CatalogError: If the file cannot be written.
        """
        if self._root is None:
            return

        path = self._root / f"{catalog.collection}{_SUFFIX}"
        try:
            if not catalog.indexes:
                path.unlink(missing_ok=True)
                return
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(catalog.model_dump_json(indent=2))
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CatalogError(
                f"Failed to write catalog file: {e}",
                details={"path": str(path), "collection": catalog.collection},
            ) from e

        logger.debug(
            f"Saved index catalog for {catalog.collection}",
            extra={"indexes": len(catalog.indexes)},
        )

"""Vector search executor."""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from docindex.config import SearchSettings, get_settings
from docindex.exceptions import IndexNotFoundError, ValidationError
from docindex.filters import compile_filter
from docindex.indexes.models import Similarity, parse_similarity
from docindex.logging_config import get_logger
from docindex.observability.metrics import track_search_request
from docindex.search.models import SearchHit
from docindex.store.database import Database

logger = get_logger(__name__)


class VectorSearchExecutor:
    """Runs nearest-neighbour queries against vector indexes.

    Searches take no locks: each reads one published index snapshot, so any
    number may run while documents are written or indexes rebuilt.
    """

    def __init__(
        self,
        database: Database,
        settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            database: Collections to search.
            settings: Search defaults (k, nprobe, limits).
        """
        self._database = database
        self._settings = settings or get_settings().search

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
        """Find the documents most similar to a query vector.

        Args:
            collection: Collection name.
            field: Embedding field with a vector index.
            query_vector: Query embedding.
            k: Maximum hits (default from settings).
            similarity: Expected metric; must match the index when given.
            scalar_filter: Filter document applied before ranking.
            min_score: Drop hits scoring below this.
            nprobe: IVF partitions to scan (default from settings).
            fields: Document fields to return with each hit.

        Returns:
            Up to ``k`` hits by descending score, ties by id ascending.
            Recall is approximate once the index is trained.

        Raises:
            IndexNotFoundError: If no vector index covers ``field``.
            DimensionMismatchError: If the query length differs from the index.
            ValidationError: If k, nprobe, similarity, filter or vector is invalid.
        """
        start = time.perf_counter()
        try:
            hits = self._search(
                collection,
                field,
                query_vector,
                k,
                similarity,
                scalar_filter,
                min_score,
                nprobe,
                fields,
            )
        except Exception:
            track_search_request(collection, time.perf_counter() - start, 0, None, success=False)
            raise

        duration = time.perf_counter() - start
        track_search_request(
            collection,
            duration,
            len(hits),
            hits[0].score if hits else None,
        )
        logger.debug(
            f"Vector search returned {len(hits)} hits",
            extra={
                "collection": collection,
                "field": field,
                "k": k,
                "duration_ms": round(duration * 1000, 3),
            },
        )
        return hits

    def _search(
        self,
        collection: str,
        field: str,
        query_vector: Sequence[float],
        k: int | None,
        similarity: str | Similarity | None,
        scalar_filter: Mapping[str, Any] | None,
        min_score: float | None,
        nprobe: int | None,
        fields: Sequence[str] | None,
    ) -> list[SearchHit]:
        limit = self._settings.default_top_k if k is None else k
        if limit < 1 or limit > self._settings.max_k:
            raise ValidationError(
                f"k must be between 1 and {self._settings.max_k}",
                details={"k": limit},
            )
        if nprobe is not None and nprobe < 1:
            raise ValidationError("nprobe must be at least 1", details={"nprobe": nprobe})

        coll = self._database.get(collection)
        index = coll.vector_index_for(field) if coll is not None else None
        if coll is None or index is None:
            raise IndexNotFoundError(
                f"No vector index on {collection}.{field}",
                details={"collection": collection, "field": field},
            )

        if similarity is not None and parse_similarity(similarity) != index.similarity:
            raise ValidationError(
                f"Index {index.name} uses {index.similarity.value} similarity, "
                f"not {parse_similarity(similarity).value}",
                details={"index": index.name, "similarity": str(similarity)},
            )

        query = index.to_vector(query_vector)
        predicate = compile_filter(scalar_filter)

        def accept(doc_id: str) -> bool:
            # Documents deleted after the snapshot was taken are skipped.
            document = coll.get(doc_id)
            return document is not None and predicate(document.data)

        ranked = index.search(query, limit, nprobe=nprobe, accept=accept, min_score=min_score)

        hits: list[SearchHit] = []
        for doc_id, score in ranked:
            projected = None
            if fields is not None:
                document = coll.get(doc_id)
                projected = document.project(fields) if document is not None else None
            hits.append(SearchHit(id=doc_id, score=score, document=projected))
        return hits

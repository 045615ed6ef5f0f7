"""Inverted-file (IVF) vector index.

Vectors are partitioned around trained centroids; a query scans only the
``nprobe`` partitions nearest to it. Until an index holds enough vectors to
train ``num_lists`` centroids it keeps everything in one partition and every
query is exact.

Readers work on an immutable ``IVFSnapshot``. Writers build a new snapshot
(copying only the partitions they touch) and publish it with a single
reference assignment, so a search sees either the old or the new index and
never a partial one.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np

from docindex.config import SearchSettings, get_settings
from docindex.documents.models import Document
from docindex.exceptions import DimensionMismatchError, ValidationError
from docindex.filters import MISSING, get_path
from docindex.indexes.base import Index
from docindex.indexes.models import IndexStats, Similarity, VectorIndexDefinition
from docindex.logging_config import get_logger

logger = get_logger(__name__)

_DTYPE = np.float32


def _all_numbers(values: Sequence[Any] | np.ndarray) -> bool:
    """True when every element is an int or float; bools and strings are not."""
    if isinstance(values, np.ndarray):
        return values.dtype.kind in "iuf"
    return all(
        isinstance(v, int | float | np.integer | np.floating) and not isinstance(v, bool)
        for v in values
    )


@dataclass(frozen=True)
class Partition:
    """One inverted list: document ids and their vectors, row-aligned."""

    ids: tuple[str, ...]
    vectors: np.ndarray

    @classmethod
    def empty(cls, dimensions: int) -> "Partition":
        return cls(ids=(), vectors=np.empty((0, dimensions), dtype=_DTYPE))

    def __len__(self) -> int:
        return len(self.ids)

    def without(self, doc_ids: set[str]) -> "Partition":
        keep = [i for i, doc_id in enumerate(self.ids) if doc_id not in doc_ids]
        return Partition(
            ids=tuple(self.ids[i] for i in keep),
            vectors=self.vectors[keep],
        )

    def extended(self, doc_ids: list[str], rows: list[np.ndarray]) -> "Partition":
        return Partition(
            ids=self.ids + tuple(doc_ids),
            vectors=np.vstack([self.vectors, np.stack(rows)]),
        )


@dataclass(frozen=True)
class IVFSnapshot:
    """Immutable view of an IVF index.

    Attributes:
        centroids: ``(num_lists, dimensions)`` array, None while untrained.
        partitions: Inverted lists aligned with the centroids.
    """

    centroids: np.ndarray | None
    partitions: tuple[Partition, ...]

    @property
    def trained(self) -> bool:
        return self.centroids is not None

    @property
    def size(self) -> int:
        return sum(len(p) for p in self.partitions)


def normalize(vector: np.ndarray) -> np.ndarray:
    """L2-normalise; a zero vector stays zero."""
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return vector / norm


def train_centroids(
    vectors: np.ndarray,
    num_lists: int,
    iterations: int,
    seed: int,
) -> np.ndarray:
    """Lloyd's k-means with deterministic initial centroids.

    Args:
        vectors: ``(n, d)`` training set with ``n >= num_lists``.
        num_lists: Number of centroids.
        iterations: Maximum refinement rounds.
        seed: Random seed for picking initial centroids.

    Returns:
        ``(num_lists, d)`` centroid array.
    """
    rng = np.random.default_rng(seed)
    picks = rng.choice(len(vectors), size=num_lists, replace=False)
    centroids = vectors[np.sort(picks)].astype(_DTYPE, copy=True)

    for _ in range(iterations):
        assignment = _nearest_centroid(vectors, centroids)
        moved = False
        for c in range(num_lists):
            members = vectors[assignment == c]
            # An emptied cluster keeps its previous centroid.
            if len(members) == 0:
                continue
            updated = members.mean(axis=0).astype(_DTYPE)
            if not np.allclose(updated, centroids[c]):
                centroids[c] = updated
                moved = True
        if not moved:
            break
    return centroids


def _nearest_centroid(vectors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    # Squared L2 without materialising the (n, k, d) difference tensor.
    distances = (
        np.sum(vectors**2, axis=1)[:, None]
        - 2.0 * vectors @ centroids.T
        + np.sum(centroids**2, axis=1)[None, :]
    )
    return np.argmin(distances, axis=1)


class VectorIndex(Index):
    """IVF index over one embedding field."""

    def __init__(
        self,
        name: str,
        definition: VectorIndexDefinition,
        settings: SearchSettings | None = None,
        created_at: datetime | None = None,
    ) -> None:
        super().__init__(name, definition, created_at)
        self._definition = definition
        self._settings = settings or get_settings().search
        self._snapshot = IVFSnapshot(
            centroids=None,
            partitions=(Partition.empty(definition.dimensions),),
        )
        # Writer-side bookkeeping; guarded by the collection write lock.
        self._locations: dict[str, int] = {}
        self._skipped = 0

    @property
    def field(self) -> str:
        return self._definition.field

    @property
    def dimensions(self) -> int:
        return self._definition.dimensions

    @property
    def similarity(self) -> Similarity:
        return self._definition.similarity

    @property
    def snapshot(self) -> IVFSnapshot:
        return self._snapshot

    @property
    def train_threshold(self) -> int:
        return self._definition.num_lists * self._settings.train_factor

    def to_vector(self, values: Any, role: str = "query") -> np.ndarray:
        """Validate raw values and convert them to a stored-form vector.

        Raises:
            DimensionMismatchError: If the length differs from the index.
            ValidationError: If the values are not finite numbers.
        """
        if not isinstance(values, list | tuple | np.ndarray):
            raise ValidationError(
                f"{role.capitalize()} vector for {self.field} must be a list of numbers",
                details={"index": self.name, "field": self.field},
            )
        if len(values) != self.dimensions:
            raise DimensionMismatchError(
                f"{role.capitalize()} vector has {len(values)} dimensions, "
                f"index {self.name} expects {self.dimensions}",
                details={
                    "index": self.name,
                    "field": self.field,
                    "expected": self.dimensions,
                    "actual": len(values),
                },
            )
        if not _all_numbers(values):
            raise ValidationError(
                f"{role.capitalize()} vector for {self.field} must be numeric",
                details={"index": self.name, "field": self.field},
            )
        try:
            vector = np.asarray(values, dtype=_DTYPE)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"{role.capitalize()} vector for {self.field} must be numeric",
                details={"index": self.name, "field": self.field, "error": str(e)},
            ) from e
        if vector.ndim != 1 or not np.all(np.isfinite(vector)):
            raise ValidationError(
                f"{role.capitalize()} vector for {self.field} must be finite numbers",
                details={"index": self.name, "field": self.field},
            )
        if self.similarity == Similarity.COS:
            vector = normalize(vector)
        return vector

    def prepare(self, document: Document) -> np.ndarray | None:
        values = get_path(document.data, self.field)
        if values is MISSING or values is None:
            return None
        return self.to_vector(values, role="document")

    def build(self, documents: Iterable[Document]) -> None:
        ids: list[str] = []
        rows: list[np.ndarray] = []
        skipped = 0
        for document in documents:
            try:
                vector = self.prepare(document)
            except (DimensionMismatchError, ValidationError) as e:
                skipped += 1
                logger.warning(
                    f"Skipping document {document.id} for index {self.name}: {e.message}",
                    extra={"index": self.name, "document_id": document.id},
                )
                continue
            if vector is not None:
                ids.append(document.id)
                rows.append(vector)

        self._skipped = skipped
        self._publish(self._layout(ids, rows))
        logger.info(
            f"Built vector index {self.name}",
            extra={
                "index": self.name,
                "entries": len(ids),
                "skipped": skipped,
                "trained": self._snapshot.trained,
            },
        )

    def apply(self, changes: Sequence[tuple[str, Any]]) -> None:
        if not changes:
            return
        snapshot = self._snapshot
        touched = {doc_id for doc_id, _ in changes}

        # Drop every touched id, then re-add the ones that still carry a vector.
        removals: dict[int, set[str]] = {}
        for doc_id in touched:
            part = self._locations.pop(doc_id, None)
            if part is not None:
                removals.setdefault(part, set()).add(doc_id)

        latest: dict[str, np.ndarray] = {}
        for doc_id, vector in changes:
            if vector is None:
                latest.pop(doc_id, None)
            else:
                latest[doc_id] = vector

        additions: dict[int, tuple[list[str], list[np.ndarray]]] = {}
        if latest:
            ids = list(latest)
            matrix = np.stack([latest[i] for i in ids])
            if snapshot.centroids is not None:
                targets = _nearest_centroid(matrix, snapshot.centroids)
            else:
                targets = np.zeros(len(ids), dtype=int)
            for doc_id, row, target in zip(ids, matrix, targets, strict=True):
                bucket = additions.setdefault(int(target), ([], []))
                bucket[0].append(doc_id)
                bucket[1].append(row)

        partitions = list(snapshot.partitions)
        for part, doc_ids in removals.items():
            partitions[part] = partitions[part].without(doc_ids)
        for part, (doc_ids, rows) in additions.items():
            partitions[part] = partitions[part].extended(doc_ids, rows)
            for doc_id in doc_ids:
                self._locations[doc_id] = part

        updated = IVFSnapshot(centroids=snapshot.centroids, partitions=tuple(partitions))
        if self._should_train(updated):
            ids, rows = _flatten(updated)
            updated = self._layout(ids, rows)
            logger.info(
                f"Trained vector index {self.name}",
                extra={"index": self.name, "entries": len(ids)},
            )
        self._publish(updated)

    def _should_train(self, snapshot: IVFSnapshot) -> bool:
        return (
            not snapshot.trained
            and self._definition.num_lists > 1
            and snapshot.size >= self.train_threshold
        )

    def _layout(self, ids: list[str], rows: list[np.ndarray]) -> IVFSnapshot:
        """Lay vectors out into partitions, training centroids when possible."""
        self._locations = {}
        num_lists = self._definition.num_lists
        if num_lists == 1 or len(ids) < self.train_threshold:
            for doc_id in ids:
                self._locations[doc_id] = 0
            partition = (
                Partition(ids=tuple(ids), vectors=np.stack(rows))
                if ids
                else Partition.empty(self.dimensions)
            )
            return IVFSnapshot(centroids=None, partitions=(partition,))

        matrix = np.stack(rows)
        centroids = train_centroids(
            matrix,
            num_lists,
            iterations=self._settings.kmeans_iterations,
            seed=self._settings.seed,
        )
        assignment = _nearest_centroid(matrix, centroids)
        partitions: list[Partition] = []
        for c in range(num_lists):
            members = np.flatnonzero(assignment == c)
            member_ids = tuple(ids[i] for i in members)
            for doc_id in member_ids:
                self._locations[doc_id] = c
            partitions.append(Partition(ids=member_ids, vectors=matrix[members]))
        return IVFSnapshot(centroids=centroids, partitions=tuple(partitions))

    def _publish(self, snapshot: IVFSnapshot) -> None:
        self._snapshot = snapshot

    def search(
        self,
        query: np.ndarray,
        k: int,
        nprobe: int | None = None,
        accept: Callable[[str], bool] | None = None,
        min_score: float | None = None,
    ) -> list[tuple[str, float]]:
        """Rank candidates from the probed partitions.

        Args:
            query: Vector already passed through ``to_vector``.
            k: Maximum hits.
            nprobe: Partitions to scan (default from settings).
            accept: Pre-filter on document id.
            min_score: Drop hits scoring below this.

        Returns:
            ``(document id, score)`` pairs, best first, ties by id ascending.
        """
        snapshot = self._snapshot
        probes = self._probe_order(snapshot, query, nprobe)

        candidates: list[tuple[float, str]] = []
        for part in probes:
            partition = snapshot.partitions[part]
            if not len(partition):
                continue
            scores = self._score(partition.vectors, query)
            for doc_id, score in zip(partition.ids, scores.tolist(), strict=True):
                if min_score is not None and score < min_score:
                    continue
                if accept is not None and not accept(doc_id):
                    continue
                candidates.append((score, doc_id))

        candidates.sort(key=lambda c: (-c[0], c[1]))
        return [(doc_id, score) for score, doc_id in candidates[:k]]

    def _probe_order(
        self,
        snapshot: IVFSnapshot,
        query: np.ndarray,
        nprobe: int | None,
    ) -> list[int]:
        if snapshot.centroids is None:
            return [0]
        probes = nprobe if nprobe is not None else self._settings.default_nprobe
        probes = max(1, min(probes, len(snapshot.partitions)))
        if self.similarity == Similarity.IP:
            order = np.argsort(-(snapshot.centroids @ query), kind="stable")
        else:
            distances = np.sum((snapshot.centroids - query) ** 2, axis=1)
            order = np.argsort(distances, kind="stable")
        return [int(i) for i in order[:probes]]

    def _score(self, vectors: np.ndarray, query: np.ndarray) -> np.ndarray:
        if self.similarity == Similarity.L2:
            return -np.sqrt(np.sum((vectors - query) ** 2, axis=1))
        # COS vectors are stored normalised, so both metrics reduce to a dot.
        return vectors @ query

    def stats(self) -> IndexStats:
        snapshot = self._snapshot
        return IndexStats(
            entries=snapshot.size,
            skipped=self._skipped,
            trained=snapshot.trained,
            partitions=sum(1 for p in snapshot.partitions if len(p)),
        )


def _flatten(snapshot: IVFSnapshot) -> tuple[list[str], list[np.ndarray]]:
    ids: list[str] = []
    rows: list[np.ndarray] = []
    for partition in snapshot.partitions:
        ids.extend(partition.ids)
        rows.extend(partition.vectors)
    return ids, rows

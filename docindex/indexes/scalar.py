"""Sorted compound index over scalar fields."""

import functools
import itertools
from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from docindex.documents.models import Document
from docindex.filters import MISSING, KeyRange, get_path, sort_key
from docindex.indexes.base import Index
from docindex.indexes.models import IndexStats, ScalarIndexDefinition
from docindex.logging_config import get_logger

logger = get_logger(__name__)

OrderedKey = tuple[Any, ...]


@functools.total_ordering
class _Descending:
    """Inverts the ordering of a wrapped sort key."""

    __slots__ = ("key",)

    def __init__(self, key: Any) -> None:
        self.key = key

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Descending) and self.key == other.key

    def __lt__(self, other: "_Descending") -> bool:
        return other.key < self.key

    def __hash__(self) -> int:
        return hash(self.key)


class ScalarIndex(Index):
    """Scalar index kept as a sorted list of ``(ordered key, doc id)`` entries.

    Array values expand to one entry per element, which marks the index
    multikey.
    """

    def __init__(
        self,
        name: str,
        definition: ScalarIndexDefinition,
        created_at: datetime | None = None,
    ) -> None:
        super().__init__(name, definition, created_at)
        self._definition = definition
        self._entries: list[tuple[OrderedKey, str]] = []
        self._keys_by_id: dict[str, list[OrderedKey]] = {}
        self._multikey_ids: set[str] = set()

    @property
    def leading_field(self) -> str:
        return self._definition.keys[0].field

    @property
    def multikey(self) -> bool:
        return bool(self._multikey_ids)

    def _order(self, value: Any, direction: int) -> Any:
        key = sort_key(value)
        return key if direction == 1 else _Descending(key)

    def prepare(self, document: Document) -> list[OrderedKey]:
        per_field: list[list[Any]] = []
        for key in self._definition.keys:
            value = get_path(document.data, key.field)
            if value is MISSING:
                value = None
            values = list(value) if isinstance(value, list | tuple) and value else [value]
            per_field.append([self._order(v, key.direction) for v in values])
        return [tuple(combo) for combo in itertools.product(*per_field)]

    def build(self, documents: Iterable[Document]) -> None:
        self._entries = []
        self._keys_by_id = {}
        self._multikey_ids = set()
        for document in documents:
            self._insert(document.id, self.prepare(document))
        logger.debug(
            f"Built scalar index {self.name}",
            extra={"index": self.name, "entries": len(self._keys_by_id)},
        )

    def apply(self, changes: Sequence[tuple[str, Any]]) -> None:
        for doc_id, keys in changes:
            self._remove(doc_id)
            if keys is not None:
                self._insert(doc_id, keys)

    def _insert(self, doc_id: str, keys: list[OrderedKey]) -> None:
        for key in keys:
            entry = (key, doc_id)
            self._entries.insert(bisect_right(self._entries, entry), entry)
        self._keys_by_id[doc_id] = keys
        if len(keys) > 1:
            self._multikey_ids.add(doc_id)

    def _remove(self, doc_id: str) -> None:
        keys = self._keys_by_id.pop(doc_id, None)
        if keys is None:
            return
        for key in keys:
            entry = (key, doc_id)
            pos = bisect_left(self._entries, entry)
            if pos < len(self._entries) and self._entries[pos] == entry:
                del self._entries[pos]
        self._multikey_ids.discard(doc_id)

    def lookup(self, key_range: KeyRange) -> list[str]:
        """Return ids whose leading key falls inside the range, in index order.

        The result is a superset of the matches: callers re-check the full
        filter.
        """

        def leading(entry: tuple[OrderedKey, str]) -> Any:
            return entry[0][0]

        ascending = self._definition.keys[0].direction == 1
        low, high = key_range.low, key_range.high
        low_inc, high_inc = key_range.low_inclusive, key_range.high_inclusive
        if not ascending:
            low, high = high, low
            low_inc, high_inc = high_inc, low_inc

        direction = 1 if ascending else -1
        start = 0
        if low is not MISSING:
            bound = self._order(low, direction)
            find = bisect_left if low_inc else bisect_right
            start = find(self._entries, bound, key=leading)
        stop = len(self._entries)
        if high is not MISSING:
            bound = self._order(high, direction)
            find = bisect_right if high_inc else bisect_left
            stop = find(self._entries, bound, key=leading)

        seen: set[str] = set()
        ids: list[str] = []
        for _, doc_id in self._entries[start:stop]:
            if doc_id not in seen:
                seen.add(doc_id)
                ids.append(doc_id)
        return ids

    def stats(self) -> IndexStats:
        return IndexStats(entries=len(self._keys_by_id), multikey=self.multikey)

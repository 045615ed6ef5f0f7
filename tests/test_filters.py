"""Tests for the scalar filter language."""

import pytest

from docindex.exceptions import ValidationError
from docindex.filters import MISSING, KeyRange, field_range, get_path, matches, sort_key

BEAN = {
    "kind": "news",
    "url": "https://example.com/a",
    "updated": 1700000000,
    "keywords": ["ai", "chips"],
    "source": {"name": "wire", "rank": 3},
    "summary": None,
}


class TestGetPath:
    """Tests for dotted path resolution."""

    def test_top_level(self) -> None:
        assert get_path(BEAN, "kind") == "news"

    def test_nested(self) -> None:
        assert get_path(BEAN, "source.rank") == 3

    def test_missing(self) -> None:
        assert get_path(BEAN, "source.missing") is MISSING
        assert get_path(BEAN, "kind.deeper") is MISSING


class TestEquality:
    """Tests for implicit and explicit equality."""

    def test_empty_filter_matches_everything(self) -> None:
        assert matches(BEAN, None)
        assert matches(BEAN, {})

    def test_plain_equality(self) -> None:
        assert matches(BEAN, {"kind": "news"})
        assert not matches(BEAN, {"kind": "blog"})

    def test_equality_against_array_element(self) -> None:
        """A list field matches when any element matches."""
        assert matches(BEAN, {"keywords": "chips"})
        assert not matches(BEAN, {"keywords": "cars"})

    def test_equality_against_whole_array(self) -> None:
        assert matches(BEAN, {"keywords": ["ai", "chips"]})

    def test_null_matches_missing_and_null(self) -> None:
        assert matches(BEAN, {"summary": None})
        assert matches(BEAN, {"absent": None})

    def test_no_cross_type_equality(self) -> None:
        """Numbers never equal strings or booleans."""
        assert not matches({"n": 1}, {"n": "1"})
        assert not matches({"n": 1}, {"n": True})

    def test_nested_path(self) -> None:
        assert matches(BEAN, {"source.name": "wire"})


class TestOperators:
    """Tests for comparison and membership operators."""

    def test_range(self) -> None:
        assert matches(BEAN, {"updated": {"$gte": 1700000000, "$lt": 1800000000}})
        assert not matches(BEAN, {"updated": {"$gt": 1700000000}})

    def test_comparison_skips_other_types(self) -> None:
        """Ranges only compare values of the same type."""
        assert not matches({"updated": "yesterday"}, {"updated": {"$gt": 0}})

    def test_ne(self) -> None:
        assert matches(BEAN, {"kind": {"$ne": "blog"}})
        assert not matches(BEAN, {"kind": {"$ne": "news"}})

    def test_in_and_nin(self) -> None:
        assert matches(BEAN, {"kind": {"$in": ["news", "blog"]}})
        assert matches(BEAN, {"keywords": {"$in": ["chips"]}})
        assert matches(BEAN, {"kind": {"$nin": ["blog"]}})
        assert not matches(BEAN, {"kind": {"$nin": ["news"]}})

    def test_exists(self) -> None:
        assert matches(BEAN, {"summary": {"$exists": True}})
        assert matches(BEAN, {"absent": {"$exists": False}})
        assert not matches(BEAN, {"url": {"$exists": False}})

    def test_field_not(self) -> None:
        assert matches(BEAN, {"updated": {"$not": {"$lt": 5}}})

    def test_in_requires_list(self) -> None:
        with pytest.raises(ValidationError):
            matches(BEAN, {"kind": {"$in": "news"}})

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValidationError, match=r"\$regex"):
            matches(BEAN, {"kind": {"$regex": "n.*"}})


class TestLogical:
    """Tests for $and, $or and $not."""

    def test_and(self) -> None:
        assert matches(BEAN, {"$and": [{"kind": "news"}, {"source.rank": {"$lte": 3}}]})
        assert not matches(BEAN, {"$and": [{"kind": "news"}, {"source.rank": 4}]})

    def test_or(self) -> None:
        assert matches(BEAN, {"$or": [{"kind": "blog"}, {"keywords": "ai"}]})
        assert not matches(BEAN, {"$or": [{"kind": "blog"}, {"keywords": "cars"}]})

    def test_top_level_not(self) -> None:
        assert matches(BEAN, {"$not": {"kind": "blog"}})

    def test_empty_or_rejected(self) -> None:
        with pytest.raises(ValidationError):
            matches(BEAN, {"$or": []})

    def test_unknown_top_level_operator(self) -> None:
        with pytest.raises(ValidationError):
            matches(BEAN, {"$where": "1"})


class TestSortKey:
    """Tests for mixed-type ordering."""

    def test_type_ranks(self) -> None:
        values = ["b", 2, None, True, 1.5, "a"]
        assert sorted(values, key=sort_key) == [None, 1.5, 2, "a", "b", True]


class TestFieldRange:
    """Tests for range extraction used by scalar index lookups."""

    def test_equality_is_point(self) -> None:
        key_range = field_range({"kind": "news", "url": "x"}, "kind")
        assert key_range == KeyRange(low="news", high="news")
        assert key_range.is_point

    def test_bounds(self) -> None:
        key_range = field_range({"updated": {"$gt": 1, "$lte": 9}}, "updated")
        assert key_range == KeyRange(low=1, low_inclusive=False, high=9, high_inclusive=True)
        assert not key_range.is_point

    def test_unsupported_conditions(self) -> None:
        assert field_range({"kind": {"$in": ["a"]}}, "kind") is None
        assert field_range({"kind": "news"}, "url") is None
        assert field_range({"tags": ["a", "b"]}, "tags") is None
        assert field_range(None, "kind") is None

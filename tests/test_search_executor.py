"""Tests for the vector search executor."""

import pytest

from docindex.documents.models import Document
from docindex.exceptions import (
    DimensionMismatchError,
    IndexNotFoundError,
    ValidationError,
)
from docindex.indexes.manager import IndexManager
from docindex.indexes.models import vector_definition
from docindex.search.executor import VectorSearchExecutor
from docindex.store.database import Database


@pytest.fixture
def indexed(manager: IndexManager, database: Database, beans: list[Document]) -> Database:
    database.collection("beans").insert_many(beans)
    manager.create_index("beans", "v_idx", vector_definition("v", 3))
    return database


class TestSearch:
    """Tests for VectorSearchExecutor.search."""

    def test_top_k(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        hits = executor.search("beans", "v", [1.0, 0.0, 0.0], k=3)

        assert [hit.id for hit in hits] == ["a", "c", "b"]
        assert hits[0].score == pytest.approx(1.0)
        assert all(hit.document is None for hit in hits)

    def test_default_k(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        hits = executor.search("beans", "v", [0.0, 0.0, 1.0])
        assert len(hits) == 4
        assert hits[0].id == "d"

    def test_scalar_prefilter(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        """The filter applies before ranking, so k hits still come back."""
        hits = executor.search(
            "beans",
            "v",
            [1.0, 0.0, 0.0],
            k=2,
            scalar_filter={"kind": "news", "updated": {"$gte": 2}},
        )
        assert [hit.id for hit in hits] == ["a", "c"]

        blogs = executor.search("beans", "v", [1.0, 0.0, 0.0], k=2, scalar_filter={"kind": "blog"})
        assert [hit.id for hit in blogs] == ["b"]

    def test_min_score(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        hits = executor.search("beans", "v", [1.0, 0.0, 0.0], k=4, min_score=0.5)
        assert [hit.id for hit in hits] == ["a", "c"]

    def test_projection(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        hits = executor.search("beans", "v", [1.0, 0.0, 0.0], k=1, fields=["url", "missing"])
        assert hits[0].document == {"url": "u/a"}

    def test_matching_similarity_accepted(
        self, indexed: Database, executor: VectorSearchExecutor
    ) -> None:
        assert executor.search("beans", "v", [1.0, 0.0, 0.0], k=1, similarity="cosine")

    def test_sees_later_writes(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        indexed.collection("beans").upsert(Document(id="z", data={"v": [1.0, 0.0, 0.0]}))
        indexed.collection("beans").delete_many({"url": "u/a"})

        hits = executor.search("beans", "v", [1.0, 0.0, 0.0], k=1)
        assert hits[0].id == "z"


class TestSearchErrors:
    """Tests for rejected searches."""

    def test_missing_collection(self, executor: VectorSearchExecutor) -> None:
        with pytest.raises(IndexNotFoundError):
            executor.search("nowhere", "v", [1.0, 0.0, 0.0])

    def test_unindexed_field(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(IndexNotFoundError):
            executor.search("beans", "other", [1.0, 0.0, 0.0])

    def test_dimension_mismatch(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(DimensionMismatchError):
            executor.search("beans", "v", [1.0, 0.0])

    def test_similarity_mismatch(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(ValidationError, match="COS"):
            executor.search("beans", "v", [1.0, 0.0, 0.0], similarity="L2")

    @pytest.mark.parametrize("k", [0, -1, 1001])
    def test_k_out_of_range(
        self, k: int, indexed: Database, executor: VectorSearchExecutor
    ) -> None:
        with pytest.raises(ValidationError):
            executor.search("beans", "v", [1.0, 0.0, 0.0], k=k)

    def test_string_query_vector(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(ValidationError, match="numeric"):
            executor.search("beans", "v", ["1.0", "0", "0"])

    def test_invalid_nprobe(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(ValidationError):
            executor.search("beans", "v", [1.0, 0.0, 0.0], nprobe=0)

    def test_invalid_filter(self, indexed: Database, executor: VectorSearchExecutor) -> None:
        with pytest.raises(ValidationError):
            executor.search("beans", "v", [1.0, 0.0, 0.0], scalar_filter={"kind": {"$bad": 1}})

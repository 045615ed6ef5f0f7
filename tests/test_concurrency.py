"""Tests for searches running alongside writes and index administration."""

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np

from docindex.catalog import IndexCatalog
from docindex.config import SearchSettings
from docindex.documents.models import Document
from docindex.exceptions import ConflictError, DocIndexError, IndexNotFoundError
from docindex.indexes.manager import IndexManager
from docindex.indexes.models import scalar_definition, vector_definition
from docindex.search.executor import VectorSearchExecutor
from docindex.store.database import Database

DIMENSIONS = 8


def _documents(count: int, seed: int = 0, prefix: str = "doc") -> list[Document]:
    rng = np.random.default_rng(seed)
    vectors = rng.normal(size=(count, DIMENSIONS))
    return [
        Document(id=f"{prefix}{i:04d}", data={"v": v.tolist(), "batch": prefix})
        for i, v in enumerate(vectors)
    ]


class TestConcurrentSearch:
    """Searches never observe a half-built index."""

    def test_search_during_rebuilds(self, search_settings: SearchSettings) -> None:
        database = Database()
        manager = IndexManager(database, settings=search_settings)
        executor = VectorSearchExecutor(database, settings=search_settings)
        database.collection("beans").insert_many(_documents(200))
        manager.create_index("beans", "v_idx", vector_definition("v", DIMENSIONS))

        query = [1.0] * DIMENSIONS
        stop = threading.Event()

        def search_loop() -> int:
            rounds = 0
            while True:
                hits = executor.search("beans", "v", query, k=10, nprobe=4)
                assert len(hits) == 10
                assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)
                rounds += 1
                if stop.is_set():
                    return rounds

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(search_loop) for _ in range(4)]
            for num_lists in (4, 1, 8, 2):
                manager.rebuild_index("beans", "v_idx", num_lists=num_lists)
            stop.set()
            rounds = [f.result() for f in futures]

        assert all(r > 0 for r in rounds)

    def test_search_during_writes(self, search_settings: SearchSettings) -> None:
        database = Database()
        manager = IndexManager(database, settings=search_settings)
        executor = VectorSearchExecutor(database, settings=search_settings)
        collection = database.collection("beans")
        manager.create_index("beans", "v_idx", vector_definition("v", DIMENSIONS, num_lists=4))
        collection.insert_many(_documents(50))

        def writer() -> None:
            for batch in range(10):
                prefix = f"w{batch}-"
                collection.insert_many(_documents(20, seed=batch + 1, prefix=prefix))
                collection.delete_many({"batch": prefix})

        def reader() -> int:
            seen = 0
            for _ in range(50):
                hits = executor.search("beans", "v", [0.5] * DIMENSIONS, k=5)
                assert len({h.id for h in hits}) == len(hits)
                seen += len(hits)
            return seen

        with ThreadPoolExecutor(max_workers=3) as pool:
            write = pool.submit(writer)
            reads = [pool.submit(reader) for _ in range(2)]
            write.result()
            for read in reads:
                read.result()

        assert executor.search("beans", "v", [0.5] * DIMENSIONS, k=5)

    def test_drop_during_search_is_clean(self, search_settings: SearchSettings) -> None:
        database = Database()
        manager = IndexManager(database, settings=search_settings)
        executor = VectorSearchExecutor(database, settings=search_settings)
        database.collection("beans").insert_many(_documents(100))
        manager.create_index("beans", "v_idx", vector_definition("v", DIMENSIONS))

        outcomes: list[str] = []

        def search_once() -> None:
            try:
                executor.search("beans", "v", [1.0] * DIMENSIONS, k=3)
                outcomes.append("hit")
            except IndexNotFoundError:
                outcomes.append("gone")

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(search_once) for _ in range(20)]
            manager.drop_index("beans", "v_idx")
            for future in futures:
                future.result()

        assert len(outcomes) == 20
        assert set(outcomes) <= {"hit", "gone"}


def _race(count: int, call: Callable[[int], object]) -> tuple[list[object], list[Exception]]:
    """Run ``call(i)`` on ``count`` threads released together."""
    barrier = threading.Barrier(count)

    def run(i: int) -> object:
        barrier.wait()
        return call(i)

    results: list[object] = []
    errors: list[Exception] = []
    with ThreadPoolExecutor(max_workers=count) as pool:
        for future in [pool.submit(run, i) for i in range(count)]:
            try:
                results.append(future.result())
            except DocIndexError as e:
                errors.append(e)
    return results, errors


class TestConcurrentAdministration:
    """Index administration calls on one collection apply one at a time."""

    def test_same_name_identical_definitions(self, search_settings: SearchSettings) -> None:
        manager = IndexManager(Database(), settings=search_settings)
        manager.database.collection("beans").insert_many(_documents(100))
        definition = vector_definition("v", DIMENSIONS, num_lists=2)

        results, errors = _race(8, lambda _: manager.create_index("beans", "v_idx", definition))

        assert errors == []
        assert len({info.created_at for info in results}) == 1
        assert [info.name for info in manager.list_indexes("beans")] == ["v_idx"]

    def test_same_name_different_definitions(self, search_settings: SearchSettings) -> None:
        manager = IndexManager(Database(), settings=search_settings)
        manager.database.collection("beans").insert_many(_documents(100))

        results, errors = _race(
            6,
            lambda i: manager.create_index(
                "beans", "v_idx", vector_definition("v", DIMENSIONS, num_lists=i + 1)
            ),
        )

        assert len(results) == 1
        assert len(errors) == 5
        assert all(isinstance(e, ConflictError) for e in errors)
        [info] = manager.list_indexes("beans")
        assert info.definition == results[0].definition

    def test_one_vector_index_per_field(self, search_settings: SearchSettings) -> None:
        manager = IndexManager(Database(), settings=search_settings)
        manager.database.collection("beans").insert_many(_documents(100))

        results, errors = _race(
            6,
            lambda i: manager.create_index("beans", f"v_{i}", vector_definition("v", DIMENSIONS)),
        )

        assert len(results) == 1
        assert len(errors) == 5
        assert all(isinstance(e, ConflictError) for e in errors)
        assert len(manager.list_indexes("beans")) == 1

    def test_catalog_keeps_every_concurrent_create(
        self, tmp_path: Path, search_settings: SearchSettings
    ) -> None:
        manager = IndexManager(
            Database(), catalog=IndexCatalog(tmp_path, "beansack"), settings=search_settings
        )
        manager.database.collection("beans").insert_many(_documents(500))

        def create(i: int) -> object:
            if i == 0:
                return manager.create_index("beans", "v_idx", vector_definition("v", DIMENSIONS))
            return manager.create_index("beans", f"f{i}_1", scalar_definition({f"f{i}": 1}))

        _, errors = _race(6, create)
        assert errors == []

        expected = {"v_idx", "f1_1", "f2_1", "f3_1", "f4_1", "f5_1"}
        [stored] = IndexCatalog(tmp_path, "beansack").load()
        assert {entry.name for entry in stored.indexes} == expected

        restarted = IndexManager(
            Database(), catalog=IndexCatalog(tmp_path, "beansack"), settings=search_settings
        )
        assert restarted.restore() == len(expected)

    def test_catalog_after_concurrent_drops(
        self, tmp_path: Path, search_settings: SearchSettings
    ) -> None:
        manager = IndexManager(
            Database(), catalog=IndexCatalog(tmp_path, "beansack"), settings=search_settings
        )
        for i in range(6):
            manager.create_index("beans", f"f{i}_1", scalar_definition({f"f{i}": 1}))

        _, errors = _race(4, lambda i: manager.drop_index("beans", f"f{i}_1"))
        assert errors == []

        [stored] = IndexCatalog(tmp_path, "beansack").load()
        assert [entry.name for entry in stored.indexes] == ["f4_1", "f5_1"]

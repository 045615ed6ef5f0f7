"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from docindex.admin.service import AdminService, build_admin_service
from docindex.api.app import app
from docindex.api.routes import get_admin_service
from docindex.config import SearchSettings, Settings, StorageSettings
from docindex.documents.models import Document
from docindex.indexes.manager import IndexManager
from docindex.search.executor import VectorSearchExecutor
from docindex.store.database import Database


@pytest.fixture
def search_settings() -> SearchSettings:
    """Search settings with a small training threshold."""
    return SearchSettings(train_factor=2, kmeans_iterations=10, default_nprobe=1, seed=7)


@pytest.fixture
def database() -> Database:
    return Database("testdb")


@pytest.fixture
def manager(database: Database, search_settings: SearchSettings) -> IndexManager:
    return IndexManager(database, settings=search_settings)


@pytest.fixture
def executor(database: Database, search_settings: SearchSettings) -> VectorSearchExecutor:
    return VectorSearchExecutor(database, settings=search_settings)


@pytest.fixture
def service() -> AdminService:
    """Fresh in-memory admin service."""
    settings = Settings(storage=StorageSettings(data_dir=None, database="testdb"))
    return build_admin_service(settings)


@pytest.fixture
def beans() -> list[Document]:
    """Small collection of 3-dimensional documents."""
    return [
        Document(id="a", data={"kind": "news", "url": "u/a", "updated": 3, "v": [1.0, 0.0, 0.0]}),
        Document(id="b", data={"kind": "blog", "url": "u/b", "updated": 1, "v": [0.0, 1.0, 0.0]}),
        Document(id="c", data={"kind": "news", "url": "u/c", "updated": 2, "v": [0.9, 0.1, 0.0]}),
        Document(id="d", data={"kind": "news", "url": "u/d", "updated": 5, "v": [0.0, 0.0, 1.0]}),
    ]


@pytest.fixture
async def client(service: AdminService) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    The admin service dependency is replaced with a fresh in-memory one.

    Yields:
        AsyncClient configured for testing.
    """
    app.dependency_overrides[get_admin_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_admin_service, None)

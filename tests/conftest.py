"""
Pytest configuration and shared fixtures.
"""
import os

os.environ['TESTING'] = '1'
os.environ['DISABLE_RATE_LIMIT'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.pop('REDIS_URL', None)

import pytest
from fastapi.testclient import TestClient

from main import create_app
from tree_service.models.tree import Node
from tree_service.repositories import InMemoryNodeRepository, SQLNodeRepository
from tree_service.services import TreeService
from tree_service.utils.cache import MemoryCacheProvider


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sql_repository():
    """SQLite in-memory node store."""
    repo = SQLNodeRepository("sqlite://")
    repo.initialize()
    yield repo
    repo.close()


@pytest.fixture
def memory_repository():
    return InMemoryNodeRepository()


@pytest.fixture(params=["sql", "memory"])
def repository(request):
    """Runs a test against every node store implementation."""
    if request.param == "sql":
        return request.getfixturevalue("sql_repository")
    return request.getfixturevalue("memory_repository")


@pytest.fixture
def cache(clock):
    return MemoryCacheProvider(ttl_seconds=60, clock=clock)


@pytest.fixture
def tree_service(sql_repository, cache):
    return TreeService(sql_repository, cache, max_page_size=100)


@pytest.fixture
def app(sql_repository, cache):
    """Create FastAPI test application with injected store and cache."""
    return create_app(repository=sql_repository, cache=cache)


@pytest.fixture
def test_client(app):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def sample_rows():
    """Flat page: two roots, nested children and an orphan whose parent is off-page."""
    return [
        Node(id=1, label="root-a"),
        Node(id=2, label="child-a1", parent_id=1),
        Node(id=3, label="root-b"),
        Node(id=4, label="grandchild-a1", parent_id=2),
        Node(id=5, label="child-a2", parent_id=1),
        Node(id=6, label="orphan", parent_id=99),
    ]


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")

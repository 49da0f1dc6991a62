"""
Pytest configuration and shared fixtures.

Provides an in-memory Firebase database and test data for the
subscription sync engine.
"""

import json
import threading
from concurrent.futures import Future
from typing import Generator, Optional

import pytest

from firebase_bridge.client.client import FirebaseClient
from firebase_bridge.client.node import NodePath, NodeValue
from firebase_bridge.future import Dispatcher
from firebase_bridge.query.models import QueryResponse, Topic
from firebase_bridge.query.service import QueryService


class InMemoryFirebaseClient(FirebaseClient):
    """
    Firebase client keeping nodes in a dict.

    Follows the database rules: children written as null are deleted,
    a node without children does not exist, merge never touches
    children it was not given.
    """

    def __init__(self):
        self.nodes: dict[str, object] = {}
        self.merges: list[tuple[NodePath, dict]] = []
        self.reads: list[NodePath] = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, path: NodePath) -> Optional[NodeValue]:
        with self._lock:
            self.reads.append(path)
            data = self.nodes.get(str(path))
        if data is None:
            return None
        return NodeValue.from_dict(data)

    def merge(self, path: NodePath, value: NodeValue) -> None:
        with self._lock:
            self.merges.append((path, dict(value)))
            node = self.nodes.get(str(path))
            if not isinstance(node, dict):
                node = {}
            for key, data in value.to_dict().items():
                if data is None:
                    node.pop(key, None)
                else:
                    node[key] = data
            if node:
                self.nodes[str(path)] = node
            else:
                self.nodes.pop(str(path), None)

    def children(self, path: NodePath) -> dict:
        """Stored children of a node, empty if it does not exist."""
        return dict(self.nodes.get(str(path)) or {})

    def close(self) -> None:
        self.closed = True


class FailingFirebaseClient(FirebaseClient):
    """Firebase client whose every call fails."""

    def __init__(self, error: Exception):
        self.error = error

    def get(self, path: NodePath) -> Optional[NodeValue]:
        raise self.error

    def merge(self, path: NodePath, value: NodeValue) -> None:
        raise self.error


class StaticQueryService(QueryService):
    """Query service answering every query with the same records."""

    def __init__(self, records: Optional[list] = None):
        self.records = list(records or [])
        self.queries = []

    def execute(self, query) -> Future:
        self.queries.append(query)
        future = Future()
        future.set_result(QueryResponse.from_records(self.records))
        return future


def completed(records: list) -> Future:
    """A future already holding a response with the given records."""
    future = Future()
    future.set_result(QueryResponse.from_records(records))
    return future


def failed(error: Exception) -> Future:
    """A future already holding the given failure."""
    future = Future()
    future.set_exception(error)
    return future


def record_json(**fields) -> str:
    """Serialize a record the way query responses do."""
    return json.dumps(fields, separators=(",", ":"))


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def firebase() -> InMemoryFirebaseClient:
    """Create an empty in-memory database."""
    return InMemoryFirebaseClient()


@pytest.fixture
def dispatcher() -> Generator[Dispatcher, None, None]:
    """Create a dispatcher with a short write wait."""
    dispatcher = Dispatcher(max_workers=2, write_await_seconds=5)
    yield dispatcher
    dispatcher.shutdown(wait=True)


@pytest.fixture
def node_path() -> NodePath:
    """Create a sample node path."""
    return NodePath("tasks_Task/3c1f9e7a")


# ============================================================================
# Query Fixtures
# ============================================================================

@pytest.fixture
def sample_topic() -> Topic:
    """Create a sample subscription topic."""
    return Topic(id="topic-1", target="tasks.Task", field_mask=("id", "title"))


@pytest.fixture
def sample_records() -> list[dict]:
    """Sample records of a query response."""
    return [
        {"id": 1, "title": "Write report", "done": False},
        {"id": 2, "title": "Review budget", "done": True},
        {"id": 3, "title": "Book flights", "done": False},
    ]


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    """Set a complete, valid configuration environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FIREBASE_DATABASE_URL", "https://test-app.firebaseio.com/")
    monkeypatch.setenv("FIREBASE_AUTH_TOKEN", "test_secret")
    monkeypatch.setenv("QUERY_BACKEND_URL", "https://backend.test/query")
    monkeypatch.setenv("SYNC_WRITE_AWAIT_SECONDS", "15")
    monkeypatch.setenv("SYNC_MAX_WORKERS", "2")
    monkeypatch.delenv("SYNC_IDENTITY_FIELD", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("QUERY_MAX_RETRIES", raising=False)

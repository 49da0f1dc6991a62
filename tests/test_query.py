"""
Unit tests for query models, services and the query bridge.
"""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from firebase_bridge.client.node import NodePath
from firebase_bridge.query import (
    AsyncQueryService,
    Query,
    QueryBridge,
    QueryResponse,
    QueryServiceError,
    RemoteQueryService,
    Subscription,
    Topic,
)

from conftest import StaticQueryService, record_json


class TestTopic:
    """Tests for Topic model."""

    def test_requires_id_and_target(self):
        """Test that a topic must name its id and target."""
        with pytest.raises(ValueError):
            Topic(id="", target="tasks.Task")
        with pytest.raises(ValueError):
            Topic(id="t1", target="")

    def test_from_dict(self):
        """Test parsing a topic from its JSON form."""
        topic = Topic.from_dict({
            "id": 7,
            "target": "tasks.Task",
            "field_mask": ["id", "title"],
            "context": {"actor": "alice"},
        })

        assert topic.id == "7"
        assert topic.field_mask == ("id", "title")
        assert topic.context == {"actor": "alice"}

    def test_context_does_not_affect_equality(self):
        """Test that topics with different contexts are the same topic."""
        first = Topic(id="t1", target="tasks.Task", context={"actor": "a"})
        second = Topic(id="t1", target="tasks.Task", context={"actor": "b"})
        assert first == second


class TestQuery:
    """Tests for Query model."""

    def test_for_topic(self, sample_topic: Topic):
        """Test that a topic query carries the topic's selection."""
        query = Query.for_topic(sample_topic)

        assert query.target == sample_topic.target
        assert query.field_mask == sample_topic.field_mask
        assert query.topic_id == sample_topic.id
        assert query.id.startswith("q-")

    def test_to_dict(self):
        """Test the wire form of a query."""
        query = Query(id="q-1", target="tasks.Task", field_mask=("id",))
        assert query.to_dict() == {
            "id": "q-1",
            "target": "tasks.Task",
            "field_mask": ["id"],
            "context": {},
        }


class TestQueryResponse:
    """Tests for QueryResponse model."""

    def test_from_records_serializes_compactly(self):
        """Test that structured records are serialized as compact JSON."""
        response = QueryResponse.from_records([{"id": 1, "title": "a"}, '"already serialized"'])

        assert response.messages == ('{"id":1,"title":"a"}', '"already serialized"')
        assert response.count == 2

    def test_null_records_are_skipped(self, caplog):
        """Test that null records are dropped with a warning instead of published."""
        with caplog.at_level(logging.WARNING):
            response = QueryResponse.from_records([{"id": 1}, None, "null"])

        assert response.messages == (record_json(id=1),)
        assert "Skipped 2 null records" in caplog.text

    def test_from_api_response(self):
        """Test parsing of the backend's response body."""
        response = QueryResponse.from_api_response({"messages": [{"id": 1}]})
        assert response.messages == (record_json(id=1),)

    def test_from_api_response_without_messages(self):
        """Test that a body without messages is an empty response."""
        assert QueryResponse.from_api_response({}).count == 0


class TestSubscription:
    """Tests for Subscription model."""

    def test_dict_round_trip(self, sample_topic: Topic):
        """Test that a subscription survives its JSON form."""
        subscription = Subscription(id="tasks_Task/abc", topic=sample_topic)
        assert Subscription.from_dict(subscription.to_dict()) == subscription


class TestAsyncQueryService:
    """Tests for the local query service."""

    def test_runs_read_function(self, sample_records):
        """Test that the read function result becomes the response."""
        seen = []

        def read(query):
            seen.append(query)
            return sample_records

        service = AsyncQueryService.local(read, max_workers=1)
        query = Query.all("tasks.Task")

        response = service.execute(query).result(timeout=5)
        service.shutdown()

        assert seen == [query]
        assert response.count == len(sample_records)

    def test_failure_reported_through_future(self):
        """Test that a failing read function fails the future."""
        def read(query):
            raise RuntimeError("database locked")

        service = AsyncQueryService.local(read, max_workers=1)

        with pytest.raises(RuntimeError, match="database locked"):
            service.execute(Query.all("tasks.Task")).result(timeout=5)
        service.shutdown()

    def test_requires_query(self):
        """Test that a query is required."""
        service = AsyncQueryService.local(lambda query: [], max_workers=1)
        with pytest.raises(ValueError):
            service.execute(None)
        service.shutdown()


class TestRemoteQueryService:
    """Tests for the HTTP query service."""

    @pytest.fixture
    def session(self) -> MagicMock:
        return MagicMock(spec=requests.Session)

    @pytest.fixture
    def service(self, session):
        service = RemoteQueryService("https://backend.test/query", session=session, max_workers=1)
        yield service
        service.close()

    def test_posts_query(self, service, session):
        """Test that the query is posted as JSON and the messages parsed."""
        session.post.return_value.json.return_value = {"messages": [{"id": 1}, {"id": 2}]}
        query = Query.all("tasks.Task")

        response = service.execute(query).result(timeout=5)

        session.post.assert_called_once_with(
            "https://backend.test/query",
            json=query.to_dict(),
            timeout=30.0,
        )
        assert response.messages == (record_json(id=1), record_json(id=2))

    def test_http_error(self, service, session):
        """Test mapping of backend errors."""
        error_response = MagicMock(status_code=503)
        session.post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError(
            "503 Server Error", response=error_response
        )

        with pytest.raises(QueryServiceError) as exc_info:
            service.execute(Query.all("tasks.Task")).result(timeout=5)

        assert exc_info.value.status_code == 503

    def test_connection_error(self, service, session):
        """Test mapping of transport errors."""
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(QueryServiceError, match="request failed"):
            service.execute(Query.all("tasks.Task")).result(timeout=5)

    def test_non_object_body(self, service, session):
        """Test that a body other than an object is rejected."""
        session.post.return_value.json.return_value = [1, 2]

        with pytest.raises(QueryServiceError, match="JSON object"):
            service.execute(Query.all("tasks.Task")).result(timeout=5)

    def test_requires_endpoint(self):
        """Test that an endpoint URL is required."""
        with pytest.raises(ValueError):
            RemoteQueryService("")


class TestQueryBridge:
    """Tests for one-shot query publication."""

    def test_send_reports_path_and_count(self, firebase, dispatcher, sample_records):
        """Test that the result names the node and the expected count."""
        bridge = QueryBridge(StaticQueryService(sample_records), firebase, dispatcher=dispatcher)

        result = bridge.send(Query.all("tasks.Task"))
        dispatcher.shutdown(wait=True)

        assert result.count == 3
        assert sorted(firebase.children(result.path).values()) == sorted(
            record_json(**r) for r in sample_records
        )

    def test_send_writes_one_record_per_request(self, firebase, dispatcher, sample_records):
        """Test non-transactional publication."""
        bridge = QueryBridge(StaticQueryService(sample_records), firebase, dispatcher=dispatcher)

        bridge.send(Query.all("tasks.Task"))
        dispatcher.shutdown(wait=True)

        assert len(firebase.merges) == 3

    def test_send_transactionally(self, firebase, dispatcher, sample_records):
        """Test that transactional publication writes once."""
        bridge = QueryBridge(StaticQueryService(sample_records), firebase, dispatcher=dispatcher)

        result = bridge.send(Query.all("tasks.Task"), transactional=True)
        dispatcher.shutdown(wait=True)

        assert len(firebase.merges) == 1
        assert len(firebase.children(result.path)) == 3

    def test_failed_query_counts_zero(self, firebase, dispatcher, caplog):
        """Test that a failed query is reported as an empty result."""
        def read(query):
            raise RuntimeError("backend down")

        service = AsyncQueryService.local(read, max_workers=1)
        bridge = QueryBridge(service, firebase, dispatcher=dispatcher)

        with caplog.at_level(logging.ERROR):
            result = bridge.send(Query.all("tasks.Task"))

        assert result.count == 0
        assert isinstance(result.path, NodePath)
        assert "backend down" in caplog.text
        service.shutdown()

    def test_to_dict(self, firebase, dispatcher):
        """Test the wire form of a query result."""
        bridge = QueryBridge(StaticQueryService([]), firebase, dispatcher=dispatcher)

        result = bridge.send(Query.all("tasks.Task"))

        assert result.to_dict() == {"path": str(result.path), "count": 0}

    def test_requires_collaborators(self, firebase):
        """Test that both collaborators are required."""
        with pytest.raises(ValueError):
            QueryBridge(None, firebase)
        with pytest.raises(ValueError):
            QueryBridge(StaticQueryService(), None)

    def test_requires_query(self, firebase, dispatcher):
        """Test that a query is required."""
        with pytest.raises(ValueError):
            QueryBridge(StaticQueryService(), firebase, dispatcher=dispatcher).send(None)

"""
Unit tests for the command line entry point.
"""

import json
from unittest.mock import patch

import pytest

from firebase_bridge import main as cli
from firebase_bridge.client.node import NodePath
from firebase_bridge.query.models import Query, Topic

from conftest import InMemoryFirebaseClient, completed, record_json


@pytest.fixture
def records_file(tmp_path, sample_records):
    path = tmp_path / "tasks.json"
    path.write_text(json.dumps(sample_records))
    return path


@pytest.fixture
def database(mock_env):
    """Replace the REST client with an in-memory database."""
    database = InMemoryFirebaseClient()
    with patch.object(cli, "create_rest_client", return_value=database):
        yield database


def topic_path(topic_id: str) -> NodePath:
    return NodePath.allocate_for_query(Query.for_topic(Topic(id=topic_id, target="tasks.Task")))


class TestLoadRecords:
    """Tests for reading records from a file."""

    def test_reads_array(self, records_file, sample_records):
        """Test that a JSON array is returned as is."""
        assert cli.load_records(records_file) == sample_records

    def test_rejects_non_array(self, tmp_path):
        """Test that other JSON documents are rejected."""
        path = tmp_path / "tasks.json"
        path.write_text('{"id": 1}')

        with pytest.raises(ValueError, match="JSON array"):
            cli.load_records(path)


class TestMain:
    """Tests for main()."""

    def test_subscribe_publishes_records(self, database, records_file, sample_records):
        """Test the subscribe action end to end."""
        exit_code = cli.main([
            "subscribe", "--target", "tasks.Task", "--topic-id", "t1", "--records", str(records_file),
        ])

        assert exit_code == 0
        assert sorted(database.children(topic_path("t1")).values()) == sorted(
            record_json(**r) for r in sample_records
        )
        assert database.closed is True

    def test_keep_up_applies_changes(self, database, records_file):
        """Test that keep-up updates the node of the same topic."""
        args = ["--target", "tasks.Task", "--topic-id", "t1", "--records", str(records_file)]
        cli.main(["subscribe", *args])

        records_file.write_text(json.dumps([{"id": 1, "title": "Write report", "done": True}]))
        exit_code = cli.main(["keep-up", *args])

        assert exit_code == 0
        assert list(database.children(topic_path("t1")).values()) == [
            record_json(id=1, title="Write report", done=True),
        ]

    def test_diff_does_not_write(self, database, records_file):
        """Test that the diff action only reads."""
        exit_code = cli.main([
            "diff", "--target", "tasks.Task", "--topic-id", "t1", "--records", str(records_file),
        ])

        assert exit_code == 0
        assert database.merges == []

    def test_show_requires_path(self, database):
        """Test that show needs a node path."""
        assert cli.main(["show"]) == 1

    def test_show_missing_node(self, database):
        """Test showing a node that does not exist."""
        assert cli.main(["show", "--path", "tasks_Task/none"]) == 0

    def test_requires_topic(self, database, records_file):
        """Test that subscription actions need a target and topic id."""
        assert cli.main(["subscribe", "--records", str(records_file)]) == 1

    def test_requires_records_source(self, database, monkeypatch):
        """Test error when neither a records file nor a backend is configured."""
        monkeypatch.delenv("QUERY_BACKEND_URL")
        assert cli.main(["subscribe", "--target", "tasks.Task", "--topic-id", "t1"]) == 1

    def test_configuration_error(self, monkeypatch, tmp_path):
        """Test exit code when configuration is missing."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FIREBASE_DATABASE_URL", raising=False)
        assert cli.main(["show", "--path", "tasks"]) == 1

    def test_remote_query_service_is_configured_and_closed(self, database, monkeypatch):
        """Test that the backend client gets its own retries and is closed on exit."""
        monkeypatch.setenv("QUERY_MAX_RETRIES", "5")

        with patch.object(cli, "RemoteQueryService") as remote:
            remote.return_value.execute.side_effect = lambda query: completed([{"id": 1}])
            exit_code = cli.main(["subscribe", "--target", "tasks.Task", "--topic-id", "t1"])

        assert exit_code == 0
        assert remote.call_args.kwargs["endpoint_url"] == "https://backend.test/query"
        assert remote.call_args.kwargs["max_retries"] == 5
        remote.return_value.close.assert_called_once_with()
        assert list(database.children(topic_path("t1")).values()) == [record_json(id=1)]

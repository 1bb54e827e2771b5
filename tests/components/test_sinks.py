"""
Tests for the data sink components.
"""

import json
from datetime import datetime, timezone

import pytest
from unittest.mock import patch, MagicMock
import redis

from eventpipe.components.sinks import JSONLinesSink, RedisSink
from eventpipe.core.record import RecordEntry


@pytest.fixture
def sample_entries():
    """Provides a record entry and its snapshot entry."""
    timestamp = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    return [
        RecordEntry("1", "push_event", timestamp, b'{"repository":{"id":42}}'),
        RecordEntry("42", "push_event", timestamp, b'{"id":42}'),
    ]


def test_jsonl_sink_appends_lines(tmp_path, sample_entries):
    path = tmp_path / "store" / "records.jsonl"
    sink = JSONLinesSink(path=str(path))

    sink.sink(sample_entries)
    sink.sink(sample_entries[:1])

    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert len(lines) == 3
    assert lines[1] == {
        "id": "42",
        "kind": "push_event",
        "timestamp": "2024-05-01T12:00:00+00:00",
        "document": {"id": 42},
    }


def test_jsonl_sink_ignores_empty_batch(tmp_path):
    path = tmp_path / "records.jsonl"
    JSONLinesSink(path=str(path)).sink([])
    assert not path.exists()


@patch("redis.Redis")
def test_redis_sink(mock_redis, sample_entries):
    """Tests that RedisSink stores one hash per record."""
    mock_client = MagicMock()
    mock_pipe = MagicMock()
    mock_client.pipeline.return_value = mock_pipe
    mock_redis.return_value = mock_client

    sink = RedisSink(key_prefix="gh:")
    sink.sink(sample_entries)

    assert mock_pipe.hset.call_count == 2
    key, = mock_pipe.hset.call_args_list[1][0]
    mapping = mock_pipe.hset.call_args_list[1][1]["mapping"]
    assert key == "gh:push_event:42"
    assert mapping["body"] == b'{"id":42}'
    assert mapping["timestamp"] == "2024-05-01T12:00:00+00:00"
    mock_pipe.execute.assert_called_once()


@patch("redis.Redis")
def test_redis_sink_wraps_errors(mock_redis, sample_entries):
    mock_client = MagicMock()
    mock_client.pipeline.return_value.execute.side_effect = redis.exceptions.ConnectionError("down")
    mock_redis.return_value = mock_client

    with pytest.raises(ConnectionError):
        RedisSink().sink(sample_entries)


@patch("redis.Redis")
def test_redis_sink_test_connection(mock_redis):
    mock_client = MagicMock()
    mock_client.ping.side_effect = redis.exceptions.ConnectionError("down")
    mock_redis.return_value = mock_client

    with pytest.raises(ConnectionError):
        RedisSink().test_connection()

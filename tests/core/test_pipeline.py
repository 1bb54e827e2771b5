"""
Tests for the pipeline orchestration.
"""

import json
from datetime import datetime, timezone

import pytest
import yaml

from eventpipe.components.annotators import DefaultsAnnotator, SnapshotAnnotator
from eventpipe.core.pipeline import process_records, run_pipeline
from eventpipe.core.record import Record


@pytest.fixture
def snapshot_annotator():
    return SnapshotAnnotator(
        rules={"push_event": {"field": "repository", "id": "id"}}
    )


def test_process_records_adds_snapshot_entries(push_event_record, snapshot_annotator):
    issue = Record.from_document("issue", "9", {"title": "Bug"})

    processed, entries = process_records(
        [push_event_record, issue], [snapshot_annotator]
    )

    assert processed == [push_event_record, issue]
    assert [(e.kind, e.id) for e in entries] == [
        ("push_event", "1"),
        ("push_event", "42"),
        ("issue", "9"),
    ]
    assert entries[1].body == b'{"id":42}'
    assert entries[1].timestamp == push_event_record.timestamp


def test_process_records_skips_snapshot_without_id(snapshot_annotator):
    record = Record.from_document("push_event", "1", {"repository": {"name": "x"}})

    processed, entries = process_records([record], [snapshot_annotator])

    assert processed == [record]
    assert [e.id for e in entries] == ["1"]


def test_process_records_drops_failing_record(push_event_record):
    bad_defaults = DefaultsAnnotator(fields={"_bogus": "x"})
    unencodable = Record.create("issue", "2")
    unencodable.push("when", datetime.now(timezone.utc))

    processed, entries = process_records([push_event_record], [bad_defaults])
    assert processed == []
    assert entries == []

    processed, entries = process_records([unencodable], [])
    assert processed == []
    assert entries == []


def test_run_pipeline_end_to_end(tmp_path):
    events_dir = tmp_path / "events"
    events_dir.mkdir()
    (events_dir / "1.json").write_text(
        json.dumps({"repository": {"id": 42}, "ref": "refs/heads/main"})
    )
    (events_dir / "2.json").write_text("{not json")

    store_path = tmp_path / "store" / "records.jsonl"
    state_path = tmp_path / "state.json"
    config = {
        "source": {
            "type": "local_files",
            "config": {"path": str(events_dir), "kind": "push_event"},
        },
        "annotators": [
            {
                "type": "snapshot",
                "config": {"rules": {"push_event": {"field": "repository", "id": "id"}}},
            },
            {"type": "defaults", "config": {"fields": {"source": "github"}}},
        ],
        "sink": {"type": "jsonl", "config": {"path": str(store_path)}},
        "state": {"type": "json", "config": {"path": str(state_path)}},
    }
    config_path = tmp_path / "pipeline.yaml"
    config_path.write_text(yaml.safe_dump(config))

    run_pipeline(str(config_path))

    lines = [json.loads(line) for line in store_path.read_text().splitlines()]
    assert [(line["kind"], line["id"]) for line in lines] == [
        ("push_event", "1"),
        ("push_event", "42"),
    ]
    assert lines[0]["document"]["source"] == "github"
    assert lines[1]["document"] == {"id": 42}
    assert lines[0]["timestamp"] == lines[1]["timestamp"]

    state = json.loads(state_path.read_text())
    assert str(events_dir / "1.json") in state["processed_items"]
    assert str(events_dir / "2.json") not in state["processed_items"]

    # Unchanged files are not sunk twice.
    run_pipeline(str(config_path))
    assert len(store_path.read_text().splitlines()) == 2

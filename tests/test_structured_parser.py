from __future__ import annotations

import json
from pathlib import Path

import pytest

from loopflow.errors import MalformedSource, SourceUnreadable
from loopflow.legacy.structured import (
    parse_backlog_document,
    parse_insights_document,
    read_json_source,
)


def test_backlog_defaults_missing_optional_fields() -> None:
    result = parse_backlog_document({"tasks": [{"id": "LF-001", "title": "Add retry"}]})

    (task,) = result.records
    assert task.status == "TODO"
    assert task.priority == "medium"
    assert task.depends_on == []
    assert task.acceptance_criteria == []
    assert result.errors == []


def test_insights_default_status_and_empty_collections() -> None:
    result = parse_insights_document(
        {
            "insights": [
                {
                    "id": "INS-001",
                    "content": "Tests first.",
                    "type": "process",
                    "created": "2024-01-01",
                    "source": {"task": "LF-001", "session": "2024-01-01-S1"},
                }
            ]
        }
    )

    (insight,) = result.records
    assert insight.status == "unprocessed"
    assert insight.tags == []
    assert insight.links == []
    assert insight.created_at == "2024-01-01"
    assert insight.source == {"task": "LF-001", "session": "2024-01-01-S1"}


def test_bare_list_is_accepted() -> None:
    result = parse_backlog_document([{"id": "LF-001", "title": "Add retry"}])
    assert [t.id for t in result.records] == ["LF-001"]


@pytest.mark.parametrize("document", [{"items": []}, {"tasks": "LF-001"}, "tasks", 42])
def test_unusable_envelope_fails_the_whole_source(document) -> None:
    with pytest.raises(MalformedSource):
        parse_backlog_document(document)


def test_malformed_records_are_skipped_and_reported() -> None:
    items = [
        {"id": "INS-001", "content": "ok", "type": "process"},
        {"id": "INS-002", "content": "bad type", "type": "gossip"},
        {"id": "INS-003", "type": "domain"},
        "not an object",
        {"id": "INS-005", "content": "tags", "type": "domain", "tags": "cache"},
        {"id": "INS-006", "content": "ok", "type": "edge_case", "tags": ["a", "a"]},
    ]

    result = parse_insights_document({"insights": items})

    assert [i.id for i in result.records] == ["INS-001", "INS-006"]
    assert [e.position for e in result.errors] == [1, 2, 3, 4]
    assert result.errors[0].record_id == "INS-002"
    assert result.errors[2].record_id is None
    assert result.total == len(items)
    assert result.records[1].tags == ["a"]


def test_task_self_dependency_is_dropped() -> None:
    result = parse_backlog_document(
        {"tasks": [{"id": "LF-002", "title": "Loop", "depends_on": ["LF-002", "LF-001"]}]}
    )
    assert result.records[0].depends_on == ["LF-001"]


def test_read_json_source_errors(tmp_path: Path) -> None:
    with pytest.raises(SourceUnreadable) as excinfo:
        read_json_source(tmp_path / "missing.json")
    assert not isinstance(excinfo.value, MalformedSource)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(MalformedSource):
        read_json_source(broken)

    good = tmp_path / "good.json"
    good.write_text(json.dumps({"tasks": []}))
    assert read_json_source(good) == {"tasks": []}

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest

from loopflow import db, importer
from loopflow.config import LoopFlowConfig
from loopflow.errors import MalformedSource, SourceUnreadable
from loopflow.importer import (
    import_from_log,
    import_from_structured,
    import_legacy_sources,
    locate_legacy_sources,
)
from loopflow.store import LoopFlowStore, Task

TWO_SESSIONS = """## 2024-01-01 | Session 1
Task: LF-001 Add retry
Outcome: PARTIAL

### Summary
Started on retries.

---

## 2024-01-01 | Session 2
Task: LF-001 Add retry
Outcome: COMPLETE

### Summary
Finished retries.

### Learnings
- Backoff needs jitter

---
"""


def _write_json(path: Path, data: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


def test_structured_import_is_idempotent(store: LoopFlowStore, tmp_path: Path) -> None:
    backlog = _write_json(
        tmp_path / "backlog.json",
        {"tasks": [{"id": "LF-001", "title": "Add retry", "status": "TODO"}]},
    )

    first = import_from_structured(store, backlog_path=backlog)
    second = import_from_structured(store, backlog_path=backlog)

    assert (first.tasks_imported, first.skipped) == (1, 0)
    assert (second.tasks_imported, second.insights_imported, second.skipped) == (0, 0, 1)
    assert store.tasks.count() == 1
    task = store.tasks.find_by_id("LF-001")
    assert task is not None and task.priority == "medium"


def test_structured_import_keeps_existing_records(store: LoopFlowStore, tmp_path: Path) -> None:
    store.tasks.insert(Task(id="LF-001", title="Edited locally", status="DONE"))
    backlog = _write_json(
        tmp_path / "backlog.json",
        {"tasks": [{"id": "LF-001", "title": "Add retry"}, {"id": "LF-002", "title": "Docs"}]},
    )

    stats = import_from_structured(store, backlog_path=backlog)

    assert (stats.tasks_imported, stats.skipped) == (1, 1)
    assert store.tasks.find_by_id("LF-001").title == "Edited locally"


def test_one_malformed_record_among_valid_ones(store: LoopFlowStore, tmp_path: Path) -> None:
    items = [
        {"id": f"INS-00{n}", "content": f"Insight number {n}", "type": "domain"}
        for n in range(1, 5)
    ]
    items.insert(2, {"id": "INS-999", "type": "domain"})
    insights = _write_json(tmp_path / "insights.json", {"insights": items})

    stats = import_from_structured(store, insights_path=insights)

    assert stats.insights_imported == 4
    assert stats.skipped == 1
    assert len(stats.errors) == 1
    assert store.insights.count() == 4


def test_unreadable_source_leaves_store_unchanged(store: LoopFlowStore, tmp_path: Path) -> None:
    insights = _write_json(
        tmp_path / "insights.json",
        {"insights": [{"id": "INS-001", "content": "ok", "type": "domain"}]},
    )
    broken = tmp_path / "backlog.json"
    broken.write_text("{")

    with pytest.raises(MalformedSource):
        import_from_structured(store, insights_path=insights, backlog_path=broken)
    with pytest.raises(SourceUnreadable):
        import_from_log(store, tmp_path / "missing.txt")

    assert store.insights.count() == 0
    assert store.sessions.count() == 0


def test_log_import_is_idempotent(store: LoopFlowStore, tmp_path: Path) -> None:
    log = tmp_path / "progress.txt"
    log.write_text(TWO_SESSIONS)

    first = import_from_log(store, log)
    ids_after_first = [s.id for s in store.sessions.list()]
    second = import_from_log(store, log)

    assert (first.imported, first.skipped) == (2, 0)
    assert (second.imported, second.skipped) == (0, 2)
    assert sorted(ids_after_first) == ["2024-01-01-S1", "2024-01-01-S2"]
    assert [s.id for s in store.sessions.list()] == ids_after_first
    assert store.sessions.find_by_id("2024-01-01-S2").learning_items() == ["Backoff needs jitter"]


def test_log_import_counts_malformed_blocks(store: LoopFlowStore, tmp_path: Path) -> None:
    log = tmp_path / "progress.txt"
    log.write_text(TWO_SESSIONS + "## Session ??\nOutcome: COMPLETE\n---\n")

    stats = import_from_log(store, log)

    assert (stats.imported, stats.skipped) == (2, 1)
    assert stats.errors


def test_locate_prefers_state_dir_over_plan_dir(repo: Path) -> None:
    state = repo / ".loop-flow"
    _write_json(state / "plan" / "backlog.json", {"tasks": []})
    _write_json(state / "plan" / "insights.json", {"insights": []})
    _write_json(state / "insights.json", {"insights": []})

    sources = locate_legacy_sources(repo)

    assert sources.backlog == state / "plan" / "backlog.json"
    assert sources.insights == state / "insights.json"
    assert sources.progress is None


def test_import_legacy_sources_without_files(store: LoopFlowStore) -> None:
    assert import_legacy_sources(store) == (None, None)


def _seed_legacy_files(repo: Path) -> None:
    state = repo / ".loop-flow"
    _write_json(state / "backlog.json", {"tasks": [{"id": "LF-001", "title": "Add retry"}]})
    _write_json(
        state / "insights.json",
        {"insights": [{"id": "INS-001", "content": "Retries need jitter.", "type": "technical"}]},
    )
    (state / "progress.txt").write_text(TWO_SESSIONS)


def test_store_auto_imports_legacy_files_once(repo: Path) -> None:
    _seed_legacy_files(repo)

    with LoopFlowStore(repo, config=LoopFlowConfig()) as store:
        assert store.tasks.count() == 1
        assert store.insights.count() == 1
        assert store.sessions.count() == 2
        store.tasks.delete("LF-001")
        assert store.run_auto_import() is False
        assert store.tasks.count() == 0

    with LoopFlowStore(repo, config=LoopFlowConfig()) as reopened:
        # Insights remain, so the structured files are not re-read.
        assert reopened.tasks.count() == 0
        assert reopened.sessions.count() == 2


def test_auto_import_can_be_disabled(repo: Path) -> None:
    _seed_legacy_files(repo)

    with LoopFlowStore(repo, config=LoopFlowConfig(), auto_import=False) as store:
        assert not store.has_records()


def test_auto_import_failure_does_not_block_startup(
    repo: Path, caplog: pytest.LogCaptureFixture
) -> None:
    state = repo / ".loop-flow"
    state.mkdir()
    (state / "backlog.json").write_text("not json")

    with LoopFlowStore(repo, config=LoopFlowConfig()) as store:
        assert store.tasks.count() == 0

    assert "auto-import" in caplog.text


def test_store_closes_its_connection_when_auto_import_crashes(
    repo: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    opened: list[sqlite3.Connection] = []
    real_connect = db.connect

    def tracking_connect(*args, **kwargs) -> sqlite3.Connection:
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    def failing_import(store: LoopFlowStore) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(db, "connect", tracking_connect)
    monkeypatch.setattr(importer, "auto_import", failing_import)

    with pytest.raises(sqlite3.OperationalError):
        LoopFlowStore(repo, config=LoopFlowConfig())

    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")

from __future__ import annotations

from loopflow.legacy.progress_log import (
    parse_outcome,
    parse_progress_log,
    parse_task_reference,
    split_blocks,
)

LOG = """# Progress

Preamble text that is not a session.

## 2026-01-22 | Session 21 (Skills Cleanup)
Task: LF-078 [IMPL] Remove obsolete skills
Outcome: COMPLETE

### Summary
Removed three skills and updated `docs/skills.md`.

### Learnings
- Keep skill names stable
- Record INS-012 for the rename

### Files Changed
- `src/skills/index.ts`
- `docs/skills.md`

---

## 2026-01-22 | Session 21b
Task: N/A
Outcome: BLOCKED: waiting on review

### Summary
Follow-up session.

---

## 2026-01-23 | Session 22
Just a note with no sections.

---
"""


def test_split_blocks_ignores_preamble() -> None:
    blocks = split_blocks(LOG)
    assert len(blocks) == 3
    assert blocks[0].startswith("## 2026-01-22 | Session 21 (")


def test_parse_full_block() -> None:
    session = parse_progress_log(LOG).records[0]

    assert session.id == "2026-01-22-S21"
    assert session.title == "Skills Cleanup"
    assert (session.task_id, session.task_type, session.task_title) == (
        "LF-078",
        "[IMPL]",
        "Remove obsolete skills",
    )
    assert session.outcome == "COMPLETE"
    assert session.summary == "Removed three skills and updated `docs/skills.md`."
    assert session.learning_items() == ["Keep skill names stable", "Record INS-012 for the rename"]
    assert session.files_changed == ["src/skills/index.ts", "docs/skills.md"]
    assert session.insights_added == ["INS-012"]


def test_suffix_session_and_blocked_reason() -> None:
    session = parse_progress_log(LOG).records[1]

    assert session.id == "2026-01-22-S21b"
    assert session.task_id is None
    assert session.outcome == "BLOCKED"
    assert session.outcome_reason == "waiting on review"
    assert session.learnings is None


def test_missing_optional_fields_are_tolerated() -> None:
    session = parse_progress_log(LOG).records[2]

    assert session.id == "2026-01-23-S22"
    assert session.outcome is None
    assert session.task_id is None
    assert session.summary == "Just a note with no sections."
    assert session.files_changed is None


def test_malformed_block_is_skipped_and_scan_continues() -> None:
    text = (
        "## 2024-01-01 | Session 1\nOutcome: COMPLETE\n---\n"
        "## Session without a date\nOutcome: COMPLETE\n---\n"
        "## 2024-13-40 | Session 2\n---\n"
        "## 2024-01-01 | Session 2\nOutcome: PARTIAL\n---\n"
    )

    result = parse_progress_log(text)

    assert [s.id for s in result.records] == ["2024-01-01-S1", "2024-01-01-S2"]
    assert [e.position for e in result.errors] == [1, 2]


def test_parsing_twice_yields_identical_ids() -> None:
    first = [s.id for s in parse_progress_log(LOG).records]
    second = [s.id for s in parse_progress_log(LOG).records]
    assert first == second


def test_parse_outcome_does_not_guess() -> None:
    assert parse_outcome("COMPLETE") == ("COMPLETE", None)
    assert parse_outcome("partial - ran out of time") == ("PARTIAL", "ran out of time")
    assert parse_outcome("BLOCKED (needs API key)") == ("BLOCKED", "needs API key")
    assert parse_outcome("Mostly done") == (None, "Mostly done")
    assert parse_outcome("") == (None, None)


def test_parse_task_reference_variants() -> None:
    assert parse_task_reference("LF-010.1 Split parser") == ("LF-010.1", None, "Split parser")
    assert parse_task_reference("Research MCP") == (None, None, "Research MCP")
    assert parse_task_reference("N/A - exploration") == (None, None, None)


def test_windows_line_endings_parse_like_unix_ones() -> None:
    text = (
        "## 2024-01-01 | Session 1\r\nOutcome: COMPLETE\r\n\r\n"
        "### Summary\r\nDid it.\r\n\r\n---\r\n"
        "## 2024-01-02 | Session 2\r\n\r\n### Summary\r\nDid more.\r\n"
    )

    result = parse_progress_log(text)

    assert [s.id for s in result.records] == ["2024-01-01-S1", "2024-01-02-S2"]
    assert [s.summary for s in result.records] == ["Did it.", "Did more."]
    assert result.records[0].outcome == "COMPLETE"
    assert result.errors == []

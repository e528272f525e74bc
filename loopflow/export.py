"""Regenerate the legacy ``insights.json``/``backlog.json``/``progress.txt`` shapes from the store."""

from __future__ import annotations

import datetime as dt
import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from . import __version__
from .db import now_iso
from .store.types import Insight, Session, Task

if TYPE_CHECKING:
    from .store import LoopFlowStore

EXPORT_SOURCE = "loopflow-sqlite"


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value not in (None, [], "")}


def insight_to_legacy(insight: Insight) -> dict[str, Any]:
    return _compact(
        {
            "id": insight.id,
            "content": insight.content,
            "summary": insight.summary,
            "type": insight.type,
            "status": insight.status,
            "source": insight.source,
            "tags": list(insight.tags),
            "links": list(insight.links),
            "notes": insight.notes,
            "created": insight.created_at,
        }
    )


def task_to_legacy(task: Task) -> dict[str, Any]:
    return _compact(
        {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "status": task.status,
            "priority": task.priority,
            "depends_on": list(task.depends_on),
            "acceptance_criteria": list(task.acceptance_criteria),
            "test_file": task.test_file,
            "notes": task.notes,
        }
    )


def generate_insights_document(
    insights: Iterable[Insight], schema_version: str = __version__
) -> dict[str, Any]:
    return {
        "schema_version": schema_version,
        "description": "Structured learnings (zettelkasten). Links form a knowledge graph.",
        "exported_at": now_iso(),
        "source": EXPORT_SOURCE,
        "insights": [insight_to_legacy(insight) for insight in insights],
    }


def generate_backlog_document(
    tasks: Iterable[Task], project: str, notes: str = ""
) -> dict[str, Any]:
    return {
        "project": project,
        "last_updated": dt.date.today().isoformat(),
        "notes": notes,
        "exported_at": now_iso(),
        "source": EXPORT_SOURCE,
        "tasks": [task_to_legacy(task) for task in tasks],
    }


def render_progress_entry(session: Session) -> str:
    """Render a session as a ``progress.txt`` block the log parser reads back."""
    header = f"## {session.date} | Session {session.session_number}{session.session_suffix}"
    if session.title:
        header += f" ({session.title})"
    if session.task_id or session.task_title:
        parts = [session.task_id, session.task_type, session.task_title]
        task_line = " ".join(part for part in parts if part)
    else:
        task_line = "N/A"
    lines = [header, f"Task: {task_line}"]
    if session.outcome:
        outcome = session.outcome
        if session.outcome_reason:
            outcome += f": {session.outcome_reason}"
        lines.append(f"Outcome: {outcome}")
    elif session.outcome_reason:
        lines.append(f"Outcome: {session.outcome_reason}")
    lines.extend(["", "### Summary", "", session.summary or ""])
    learnings = session.learning_items()
    if learnings:
        lines.extend(["", "### Learnings", ""])
        lines.extend(f"- {item}" for item in learnings)
    if session.files_changed:
        lines.extend(["", "### Files Changed", ""])
        lines.extend(f"- `{path}`" for path in session.files_changed)
    if session.insights_added:
        lines.extend(["", "### Insights Added", ""])
        lines.extend(f"- {insight_id}" for insight_id in session.insights_added)
    lines.extend(["", "---", ""])
    return "\n".join(lines) + "\n"


def render_progress_log(sessions: Iterable[Session]) -> str:
    ordered = sorted(
        sessions, key=lambda s: (s.date, s.session_number, s.session_suffix)
    )
    return "".join(render_progress_entry(session) for session in ordered)


def export_legacy_files(store: LoopFlowStore, output_dir: Path | str) -> dict[str, Path]:
    """Write all three legacy files into ``output_dir`` and return their paths."""
    target = Path(output_dir).expanduser()
    target.mkdir(parents=True, exist_ok=True)
    insights_doc = generate_insights_document(reversed(store.insights.list()))
    backlog_doc = generate_backlog_document(store.tasks.list(), store.repo_path.name)
    paths = {
        "insights": target / "insights.json",
        "backlog": target / "backlog.json",
        "progress": target / "progress.txt",
    }
    paths["insights"].write_text(json.dumps(insights_doc, ensure_ascii=False, indent=2) + "\n")
    paths["backlog"].write_text(json.dumps(backlog_doc, ensure_ascii=False, indent=2) + "\n")
    paths["progress"].write_text(render_progress_log(store.sessions.list()))
    return paths

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich import print

from .common import compact_text, exit_on_error


def search_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    query: str,
    kind: str,
    limit: int | None,
) -> None:
    """Full-text search over insights, tasks and sessions."""

    store = store_from_path(repo, db_path)
    try:
        repositories = {
            "insights": store.insights,
            "tasks": store.tasks,
            "sessions": store.sessions,
        }
        if kind != "all" and kind not in repositories:
            print(f"[red]Unknown kind {kind}; use insights, tasks, sessions or all[/red]")
            raise typer.Exit(code=1)
        selected = repositories if kind == "all" else {kind: repositories[kind]}
        found = 0
        for label, repository in selected.items():
            for record in repository.search(query, limit=limit):
                found += 1
                print(f"[{record.id}] ({label}) {compact_text(_headline(record), 100)}")
    finally:
        store.close()
    if not found:
        print("[yellow]No matches[/yellow]")


def _headline(record: Any) -> str:
    return getattr(record, "summary", None) or getattr(record, "title", None) or ""


def tasks_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    status: list[str] | None,
    priority: str | None,
    ready: bool,
) -> None:
    store = store_from_path(repo, db_path)
    try:
        with exit_on_error():
            if ready:
                tasks = store.tasks.ready()
            else:
                tasks = store.tasks.list({"status": status or None, "priority": priority})
    finally:
        store.close()
    for task in tasks:
        deps = f" (depends on {', '.join(task.depends_on)})" if task.depends_on else ""
        print(f"[{task.id}] {task.status} {task.priority}: {task.title}{deps}")
    if not tasks:
        print("[yellow]No tasks[/yellow]")


def insights_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    status: str | None,
    insight_type: str | None,
    limit: int | None,
) -> None:
    store = store_from_path(repo, db_path)
    try:
        with exit_on_error():
            insights = store.insights.list({"status": status, "type": insight_type}, limit=limit)
    finally:
        store.close()
    for insight in insights:
        print(f"[{insight.id}] ({insight.type}, {insight.status}) {insight.summary or ''}")
    if not insights:
        print("[yellow]No insights[/yellow]")


def sessions_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    limit: int | None,
    task_id: str | None,
    as_json: bool,
) -> None:
    """Show recent sessions, newest first."""

    store = store_from_path(repo, db_path)
    try:
        count = limit or store.config.recent_sessions
        if task_id:
            sessions = store.sessions.list({"task_id": task_id}, limit=count)
        else:
            sessions = store.sessions.recent(count)
    finally:
        store.close()
    if as_json:
        typer.echo(json.dumps([asdict(session) for session in sessions], indent=2))
        return
    for session in sessions:
        outcome = session.outcome or "UNKNOWN"
        task = f" {session.task_id}" if session.task_id else ""
        print(f"[{session.id}]{task} {outcome}: {compact_text(session.summary, 100)}")
    if not sessions:
        print("[yellow]No sessions[/yellow]")

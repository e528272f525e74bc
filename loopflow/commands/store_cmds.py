from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from loopflow import importer
from loopflow.db import STATE_DIR_NAME
from loopflow.export import export_legacy_files

from .common import exit_on_error


def init_cmd(*, store_from_path, repo: str | None, db_path: str | None, no_import: bool) -> None:
    """Create the store (and seed it from legacy files unless disabled)."""

    store = store_from_path(repo, db_path, auto_import=False if no_import else None)
    try:
        stats = store.stats()
    finally:
        store.close()
    print(f"Initialized store at {stats['path']} (schema v{stats['schema_version']})")
    print(
        f"- {stats['insights']} insights, {stats['tasks']} tasks, {stats['sessions']} sessions"
    )


def status_cmd(*, store_from_path, repo: str | None, db_path: str | None) -> None:
    store = store_from_path(repo, db_path)
    try:
        stats = store.stats()
        last_session = store.sessions.last_session_id()
    finally:
        store.close()

    print("[bold]Store[/bold]")
    print(f"- Path: {stats['path']}")
    print(f"- Schema: v{stats['schema_version']} (latest v{stats['latest_schema_version']})")
    print(f"- Insights: {stats['insights']} ({stats['unprocessed_insights']} unprocessed)")
    print(f"- Tasks: {stats['tasks']} ({stats['open_tasks']} open)")
    print(f"- Sessions: {stats['sessions']}")
    print(f"- Context keys: {stats['context_keys']}")
    if last_session:
        print(f"- Last session: {last_session}")


def import_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    insights: str | None,
    backlog: str | None,
    progress: str | None,
) -> None:
    """Import legacy files; explicit paths override the located defaults."""

    store = store_from_path(repo, db_path, auto_import=False)
    try:
        with exit_on_error():
            if insights or backlog or progress:
                structured = None
                if insights or backlog:
                    structured = importer.import_from_structured(
                        store, insights_path=insights, backlog_path=backlog
                    )
                log = importer.import_from_log(store, progress) if progress else None
            else:
                structured, log = importer.import_legacy_sources(store)
    finally:
        store.close()

    if structured is None and log is None:
        print("[yellow]No legacy files found[/yellow]")
        raise typer.Exit(code=0)
    if structured is not None:
        print(
            f"Structured: {structured.insights_imported} insights, "
            f"{structured.tasks_imported} tasks imported, {structured.skipped} skipped"
        )
        for error in structured.errors:
            print(f"[yellow]- {error}[/yellow]")
    if log is not None:
        print(f"Progress log: {log.imported} sessions imported, {log.skipped} skipped")
        for error in log.errors:
            print(f"[yellow]- {error}[/yellow]")


def export_cmd(
    *, store_from_path, repo: str | None, db_path: str | None, output: str | None
) -> None:
    """Write insights.json, backlog.json and progress.txt from the store."""

    store = store_from_path(repo, db_path, auto_import=False)
    try:
        target = Path(output) if output else store.repo_path / STATE_DIR_NAME / "export"
        with exit_on_error():
            paths = export_legacy_files(store, target)
    finally:
        store.close()
    for label, path in paths.items():
        print(f"Wrote {label} to {path}")

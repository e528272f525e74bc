from __future__ import annotations

import json

import typer
from rich import print

from .common import exit_on_error


def context_show_cmd(*, store_from_path, repo: str | None, db_path: str | None) -> None:
    """Print the repository context as JSON."""

    store = store_from_path(repo, db_path)
    try:
        context = store.repo_context.full_context()
    finally:
        store.close()
    typer.echo(json.dumps(context, indent=2, ensure_ascii=False))


def context_set_cmd(
    *,
    store_from_path,
    repo: str | None,
    db_path: str | None,
    key: str,
    value: str,
    session_id: str | None,
) -> None:
    """Set one context key; values that parse as JSON are stored as JSON."""

    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    store = store_from_path(repo, db_path)
    try:
        with exit_on_error():
            store.repo_context.set(key, parsed, session_id)
    finally:
        store.close()
    print(f"Set {key}")

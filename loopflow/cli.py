from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import (
    configure_logging,
    load_config_or_exit,
    read_config_or_exit,
    store_from_path,
    write_config_or_exit,
)
from .commands.config_cmds import config_set_cmd, config_show_cmd
from .commands.context_cmds import context_set_cmd, context_show_cmd
from .commands.query_cmds import insights_cmd, search_cmd, sessions_cmd, tasks_cmd
from .commands.store_cmds import export_cmd, import_cmd, init_cmd, status_cmd
from .config import get_config_path, get_env_overrides, load_config

app = typer.Typer(help="loopflow: local knowledge store for the loop-flow workflow")
context_app = typer.Typer(help="Repository context")
app.add_typer(context_app, name="context")
config_app = typer.Typer(help="Settings in the loopflow config file")
app.add_typer(config_app, name="config")

REPO_HELP = "Repository root (defaults to the current directory)"
DB_HELP = "Path to SQLite database (defaults to <repo>/.loop-flow/loopflow.db)"


@app.callback()
def main_callback(
    log_level: str = typer.Option(None, help="Logging level (defaults to config)"),
) -> None:
    configure_logging(log_level or load_config_or_exit().log_level)


@app.command()
def init(
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
    no_import: bool = typer.Option(False, help="Skip the legacy file import"),
) -> None:
    """Create the store and migrate it to the latest schema."""
    init_cmd(store_from_path=store_from_path, repo=repo, db_path=db_path, no_import=no_import)


@app.command()
def status(
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Show store statistics."""
    status_cmd(store_from_path=store_from_path, repo=repo, db_path=db_path)


@app.command("import")
def import_legacy(
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
    insights: str = typer.Option(None, help="Path to a legacy insights.json"),
    backlog: str = typer.Option(None, help="Path to a legacy backlog.json"),
    progress: str = typer.Option(None, help="Path to a legacy progress.txt"),
) -> None:
    """Import legacy files; records already stored are skipped."""
    import_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        insights=insights,
        backlog=backlog,
        progress=progress,
    )


@app.command()
def export(
    output: str = typer.Option(None, help="Output directory (defaults to .loop-flow/export)"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Regenerate legacy files from the store."""
    export_cmd(store_from_path=store_from_path, repo=repo, db_path=db_path, output=output)


@app.command()
def search(
    query: str,
    kind: str = typer.Option("all", help="insights, tasks, sessions or all"),
    limit: int = typer.Option(None, help="Max results per kind"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Full-text search."""
    search_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        query=query,
        kind=kind,
        limit=limit,
    )


@app.command()
def tasks(
    status: list[str] = typer.Option(None, help="Repeat for multiple statuses"),
    priority: str = typer.Option(None, help="Filter by priority"),
    ready: bool = typer.Option(False, help="Only TODO tasks whose dependencies are DONE"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """List backlog tasks."""
    tasks_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        status=status,
        priority=priority,
        ready=ready,
    )


@app.command()
def insights(
    status: str = typer.Option(None, help="unprocessed or discussed"),
    insight_type: str = typer.Option(None, "--type", help="Filter by insight type"),
    limit: int = typer.Option(None, help="Max results"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """List insights, newest first."""
    insights_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        status=status,
        insight_type=insight_type,
        limit=limit,
    )


@app.command()
def sessions(
    limit: int = typer.Option(None, help="Number of sessions (defaults to config)"),
    task_id: str = typer.Option(None, help="Only sessions for this task"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Show recent sessions."""
    sessions_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        limit=limit,
        task_id=task_id,
        as_json=as_json,
    )


@context_app.command("show")
def context_show(
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Print the repository context."""
    context_show_cmd(store_from_path=store_from_path, repo=repo, db_path=db_path)


@context_app.command("set")
def context_set(
    key: str,
    value: str,
    session_id: str = typer.Option(None, help="Session that made the change"),
    repo: str = typer.Option(None, help=REPO_HELP),
    db_path: str = typer.Option(None, help=DB_HELP),
) -> None:
    """Set a context key (JSON values are parsed)."""
    context_set_cmd(
        store_from_path=store_from_path,
        repo=repo,
        db_path=db_path,
        key=key,
        value=value,
        session_id=session_id,
    )


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    config_show_cmd(
        load_config=load_config,
        get_config_path=get_config_path,
        get_env_overrides=get_env_overrides,
    )


@config_app.command("set")
def config_set(key: str, value: str) -> None:
    """Set a config value (JSON values are parsed)."""
    config_set_cmd(
        read_config_or_exit=read_config_or_exit,
        write_config_or_exit=write_config_or_exit,
        load_config=load_config,
        key=key,
        value=value,
    )


@app.command("version")
def version() -> None:
    """Print version."""
    print(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

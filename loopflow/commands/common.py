from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich import print

from loopflow.config import LoopFlowConfig, load_config, read_config_file, write_config_file
from loopflow.errors import LoopFlowError
from loopflow.store import LoopFlowStore


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def load_config_or_exit() -> LoopFlowConfig:
    read_config_or_exit()
    return load_config()


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report ``LoopFlowError`` as a red message and exit non-zero."""
    try:
        yield
    except LoopFlowError as exc:
        print(f"[red]{exc.code}: {exc.message}[/red]")
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def store_from_path(
    repo: str | None, db_path: str | None = None, *, auto_import: bool | None = None
) -> LoopFlowStore:
    config = load_config_or_exit()
    with exit_on_error():
        return LoopFlowStore(
            Path(repo or ".").resolve(),
            db_path=db_path,
            config=config,
            auto_import=auto_import,
        )


def compact_text(text: str | None, limit: int) -> str:
    value = " ".join((text or "").split())
    if len(value) <= limit:
        return value
    return value[: max(limit - 3, 0)].rstrip() + "..."

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .db import STATE_DIR_NAME
from .errors import DuplicateId, LoopFlowError
from .legacy.progress_log import parse_progress_log, read_log_source
from .legacy.structured import parse_backlog_document, parse_insights_document, read_json_source
from .store.types import LogImportStats, StructuredImportStats

if TYPE_CHECKING:
    from .store import LoopFlowStore

logger = logging.getLogger(__name__)

INSIGHTS_FILENAME = "insights.json"
BACKLOG_FILENAME = "backlog.json"
PROGRESS_FILENAME = "progress.txt"


@dataclass
class LegacySources:
    insights: Path | None = None
    backlog: Path | None = None
    progress: Path | None = None

    @property
    def has_structured(self) -> bool:
        return self.insights is not None or self.backlog is not None


def _locate(repo_path: Path, filename: str) -> Path | None:
    state_dir = repo_path / STATE_DIR_NAME
    for candidate in (state_dir / filename, state_dir / "plan" / filename):
        if candidate.is_file():
            return candidate
    return None


def locate_legacy_sources(repo_path: Path | str) -> LegacySources:
    """Find legacy files under ``.loop-flow/``, falling back to ``.loop-flow/plan/``."""
    root = Path(repo_path).expanduser()
    return LegacySources(
        insights=_locate(root, INSIGHTS_FILENAME),
        backlog=_locate(root, BACKLOG_FILENAME),
        progress=_locate(root, PROGRESS_FILENAME),
    )


def _insert_new(repository: Any, record: Any) -> bool:
    if repository.find_by_id(record.id) is not None:
        return False
    try:
        repository.insert(record)
    except DuplicateId:
        logger.debug("%s %s appeared during import; skipping", repository.entity, record.id)
        return False
    return True


def import_from_structured(
    store: LoopFlowStore,
    *,
    insights_path: Path | str | None = None,
    backlog_path: Path | str | None = None,
) -> StructuredImportStats:
    """Import legacy insights and backlog documents, skipping ids already stored.

    Both documents are read and parsed before anything is written, so an
    unreadable or malformed source leaves the store untouched.
    """
    insights = None
    tasks = None
    if insights_path is not None:
        source = str(insights_path)
        insights = parse_insights_document(read_json_source(Path(insights_path)), source)
    if backlog_path is not None:
        source = str(backlog_path)
        tasks = parse_backlog_document(read_json_source(Path(backlog_path)), source)

    stats = StructuredImportStats()
    if insights is not None:
        stats.skipped += len(insights.errors)
        stats.errors.extend(str(error) for error in insights.errors)
        for insight in insights.records:
            if _insert_new(store.insights, insight):
                stats.insights_imported += 1
            else:
                stats.skipped += 1
    if tasks is not None:
        stats.skipped += len(tasks.errors)
        stats.errors.extend(str(error) for error in tasks.errors)
        for task in tasks.records:
            if _insert_new(store.tasks, task):
                stats.tasks_imported += 1
            else:
                stats.skipped += 1
    logger.info(
        "structured import: %d insights, %d tasks imported, %d skipped",
        stats.insights_imported,
        stats.tasks_imported,
        stats.skipped,
    )
    return stats


def import_from_log(store: LoopFlowStore, path: Path | str) -> LogImportStats:
    parsed = parse_progress_log(read_log_source(Path(path)))
    stats = LogImportStats(skipped=len(parsed.errors))
    stats.errors.extend(str(error) for error in parsed.errors)
    for session in parsed.records:
        if _insert_new(store.sessions, session):
            stats.imported += 1
        else:
            stats.skipped += 1
    logger.info("progress log import: %d imported, %d skipped", stats.imported, stats.skipped)
    return stats


def import_legacy_sources(
    store: LoopFlowStore,
) -> tuple[StructuredImportStats | None, LogImportStats | None]:
    """Run every import whose legacy file exists for the store's repository."""
    sources = locate_legacy_sources(store.repo_path)
    structured = None
    log = None
    if sources.has_structured:
        structured = import_from_structured(
            store, insights_path=sources.insights, backlog_path=sources.backlog
        )
    if sources.progress is not None:
        log = import_from_log(store, sources.progress)
    return structured, log


def auto_import(store: LoopFlowStore) -> None:
    """Seed an empty store from legacy files. Failures are logged, never raised."""
    sources = locate_legacy_sources(store.repo_path)
    if sources.has_structured and store.insights.count() == 0 and store.tasks.count() == 0:
        try:
            import_from_structured(
                store, insights_path=sources.insights, backlog_path=sources.backlog
            )
        except LoopFlowError:
            logger.warning("auto-import of structured legacy files failed", exc_info=True)
    if sources.progress is not None and store.sessions.count() == 0:
        try:
            import_from_log(store, sources.progress)
        except LoopFlowError:
            logger.warning("auto-import of %s failed", sources.progress, exc_info=True)

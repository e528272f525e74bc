from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .. import db
from ..config import LoopFlowConfig, load_config
from ..errors import SchemaMigrationFailure
from .insights import InsightRepository
from .repo_context import RepoContextRepository
from .sessions import SessionRepository
from .tasks import TaskRepository

logger = logging.getLogger(__name__)


class LoopFlowStore:
    """Handle on one repository's store: connection, schema, and repositories.

    Opening the store migrates it to the latest schema version and, unless
    disabled, seeds an empty store from legacy files once.
    """

    def __init__(
        self,
        repo_path: Path | str,
        *,
        db_path: Path | str | None = None,
        config: LoopFlowConfig | None = None,
        auto_import: bool | None = None,
        check_same_thread: bool = True,
    ):
        self.repo_path = Path(repo_path).expanduser()
        self.db_path = Path(db_path).expanduser() if db_path else db.default_db_path(self.repo_path)
        self.config = config or load_config()
        self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        self.migration = db.migrate_to_latest(self.conn)
        if not self.migration.success:
            self.conn.close()
            raise SchemaMigrationFailure(
                f"cannot migrate {self.db_path}: {self.migration.error}",
                from_version=self.migration.from_version,
            )

        search_limit = self.config.search_limit
        summary_max = self.config.summary_max_chars
        self.insights = InsightRepository(
            self.conn, search_limit=search_limit, summary_max_length=summary_max
        )
        self.tasks = TaskRepository(
            self.conn, search_limit=search_limit, summary_max_length=summary_max
        )
        self.sessions = SessionRepository(self.conn, search_limit=search_limit)
        self.repo_context = RepoContextRepository(self.conn, search_limit=search_limit)

        self._auto_import_ran = False
        if auto_import is None:
            auto_import = self.config.auto_import
        if auto_import:
            try:
                self.run_auto_import()
            except BaseException:
                self.conn.close()
                raise

    def run_auto_import(self) -> bool:
        """Seed from legacy files; returns False when it already ran for this handle."""
        if self._auto_import_ran:
            return False
        self._auto_import_ran = True
        from ..importer import auto_import

        auto_import(self)
        return True

    @property
    def schema_version(self) -> int:
        return db.current_version(self.conn)

    def has_records(self) -> bool:
        return any(
            repository.count() > 0
            for repository in (self.insights, self.tasks, self.sessions, self.repo_context)
        )

    def stats(self) -> dict[str, Any]:
        size = self.db_path.stat().st_size if self.db_path.exists() else 0
        return {
            "path": str(self.db_path),
            "size_bytes": size,
            "schema_version": self.schema_version,
            "latest_schema_version": db.CURRENT_SCHEMA_VERSION,
            "insights": self.insights.count(),
            "unprocessed_insights": self.insights.count({"status": "unprocessed"}),
            "tasks": self.tasks.count(),
            "open_tasks": self.tasks.count({"status": ["TODO", "IN_PROGRESS", "BLOCKED"]}),
            "sessions": self.sessions.count(),
            "context_keys": self.repo_context.count(),
        }

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> LoopFlowStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

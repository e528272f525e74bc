from __future__ import annotations

import datetime as dt
import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".loop-flow"
DB_FILENAME = "loopflow.db"


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    statements: tuple[str, ...]


MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        version=1,
        description="Insights and tasks with FTS5 search indexes",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL,
                description TEXT
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS insights (
                row_id INTEGER PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                content TEXT NOT NULL,
                summary TEXT,
                type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'unprocessed',
                tags TEXT,
                links TEXT,
                source TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS tasks (
                row_id INTEGER PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                description TEXT,
                summary TEXT,
                status TEXT NOT NULL DEFAULT 'TODO',
                priority TEXT NOT NULL DEFAULT 'medium',
                depends_on TEXT,
                acceptance_criteria TEXT,
                test_file TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
            "CREATE VIRTUAL TABLE IF NOT EXISTS insights_fts USING fts5(content, summary, tags)",
            "CREATE VIRTUAL TABLE IF NOT EXISTS tasks_fts USING fts5(title, description, summary)",
            "CREATE INDEX IF NOT EXISTS idx_insights_type ON insights(type)",
            "CREATE INDEX IF NOT EXISTS idx_insights_status ON insights(status)",
            "CREATE INDEX IF NOT EXISTS idx_insights_created ON insights(created_at)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority)",
        ),
    ),
    Migration(
        version=2,
        description="Work sessions recovered from the progress log",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                row_id INTEGER PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                date TEXT NOT NULL,
                session_number INTEGER NOT NULL,
                session_suffix TEXT NOT NULL DEFAULT '',
                title TEXT,
                task_id TEXT,
                task_type TEXT,
                task_title TEXT,
                outcome TEXT,
                outcome_reason TEXT,
                summary TEXT NOT NULL DEFAULT '',
                learnings TEXT,
                files_changed TEXT,
                insights_added TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(date, session_number, session_suffix)
            )
            """,
            "CREATE VIRTUAL TABLE IF NOT EXISTS sessions_fts USING fts5(task_title, summary, learnings)",
            "CREATE INDEX IF NOT EXISTS idx_sessions_date ON sessions(date, session_number)",
            "CREATE INDEX IF NOT EXISTS idx_sessions_task ON sessions(task_id)",
        ),
    ),
    Migration(
        version=3,
        description="Per-repository context values",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS repo_context (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                updated_by_session TEXT
            )
            """,
        ),
    ),
    Migration(
        version=4,
        description="Highest sequential id ever allocated per table",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS id_allocations (
                table_name TEXT PRIMARY KEY,
                highest INTEGER NOT NULL
            )
            """,
        ),
    ),
)

CURRENT_SCHEMA_VERSION = MIGRATIONS[-1].version


@dataclass(frozen=True)
class MigrationResult:
    from_version: int
    to_version: int
    success: bool
    error: str | None = None


def default_db_path(repo_path: Path | str) -> Path:
    return Path(repo_path).expanduser() / STATE_DIR_NAME / DB_FILENAME


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    # Transactions are opened explicitly by ``transaction``.
    conn = sqlite3.connect(path, check_same_thread=check_same_thread, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block as one atomic unit; joins an already-open transaction."""
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def _has_table(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (name,),
    ).fetchone()
    return row is not None


def current_version(conn: sqlite3.Connection) -> int:
    if not _has_table(conn, "schema_migrations"):
        return 0
    row = conn.execute("SELECT MAX(version) AS version FROM schema_migrations").fetchone()
    if row is None or row["version"] is None:
        return 0
    return int(row["version"])


def applied_migrations(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    if not _has_table(conn, "schema_migrations"):
        return []
    rows = conn.execute(
        "SELECT version, applied_at, description FROM schema_migrations ORDER BY version"
    ).fetchall()
    return rows_to_dicts(rows)


def migrate_to_latest(
    conn: sqlite3.Connection,
    migrations: Iterable[Migration] | None = None,
) -> MigrationResult:
    from_version = current_version(conn)
    pending = sorted(
        (m for m in (MIGRATIONS if migrations is None else migrations) if m.version > from_version),
        key=lambda m: m.version,
    )
    if not pending:
        return MigrationResult(from_version=from_version, to_version=from_version, success=True)

    try:
        with transaction(conn):
            for migration in pending:
                for statement in migration.statements:
                    conn.execute(statement)
                conn.execute(
                    """
                    INSERT INTO schema_migrations(version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (migration.version, now_iso(), migration.description),
                )
                logger.info("applied schema version %s: %s", migration.version, migration.description)
    except sqlite3.Error as exc:
        logger.error("schema migration from version %s failed: %s", from_version, exc)
        return MigrationResult(
            from_version=from_version,
            to_version=from_version,
            success=False,
            error=str(exc),
        )
    return MigrationResult(
        from_version=from_version,
        to_version=pending[-1].version,
        success=True,
    )


def now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def to_json(data: Any) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False)


def from_json(text: str | None, default: Any = None) -> Any:
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return default


def rows_to_dicts(rows: Iterable[sqlite3.Row]) -> list[dict[str, Any]]:
    return [dict(r) for r in rows]

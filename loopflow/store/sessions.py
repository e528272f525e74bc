from __future__ import annotations

from typing import Any

from .base import Repository
from .types import Session


class SessionRepository(Repository[Session]):
    entity = "session"
    table = "sessions"
    record_type = Session
    columns = (
        "id",
        "date",
        "session_number",
        "session_suffix",
        "title",
        "task_id",
        "task_type",
        "task_title",
        "outcome",
        "outcome_reason",
        "summary",
        "learnings",
        "files_changed",
        "insights_added",
        "created_at",
    )
    json_columns = frozenset({"files_changed", "insights_added"})
    fts_table = "sessions_fts"
    fts_columns = ("task_title", "summary", "learnings")
    filter_columns = {"task_id": "task_id", "outcome": "outcome", "date": "date"}
    order_by = "date DESC, session_number DESC, session_suffix DESC"
    immutable_fields = frozenset({"id", "date", "session_number", "session_suffix", "created_at"})

    def _filter_clauses(
        self, filters: dict[str, Any] | None, prefix: str = ""
    ) -> tuple[list[str], list[Any]]:
        filters = dict(filters or {})
        date_from = filters.pop("date_from", None)
        date_to = filters.pop("date_to", None)
        clauses, params = super()._filter_clauses(filters, prefix)
        if date_from:
            clauses.append(f"{prefix}date >= ?")
            params.append(date_from)
        if date_to:
            clauses.append(f"{prefix}date <= ?")
            params.append(date_to)
        return clauses, params

    def recent(self, n: int) -> list[Session]:
        return self.list(limit=n)

    def last_session_id(self) -> str | None:
        latest = self.recent(1)
        return latest[0].id if latest else None

    def next_session_number(self, date: str) -> int:
        row = self.conn.execute(
            "SELECT MAX(session_number) AS number FROM sessions WHERE date = ?",
            (date,),
        ).fetchone()
        if row is None or row["number"] is None:
            return 1
        return int(row["number"]) + 1

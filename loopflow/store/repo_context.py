from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any

from .. import db
from ..errors import DuplicateId, NotFound
from .types import KNOWN_CONTEXT_KEYS, ContextEntry


class RepoContextRepository:
    """Key/value state the agent keeps about the repository (summary, next actions)."""

    entity = "context"

    def __init__(self, conn: sqlite3.Connection, *, search_limit: int = 20) -> None:
        self.conn = conn
        self.search_limit = search_limit

    @staticmethod
    def _from_row(row: sqlite3.Row) -> ContextEntry:
        return ContextEntry(
            key=row["key"],
            value=db.from_json(row["value_json"]),
            updated_at=row["updated_at"],
            updated_by_session=row["updated_by_session"],
        )

    @staticmethod
    def _check_key(key: str) -> str:
        key = (key or "").strip()
        if not key:
            raise ValueError("context key is required")
        return key

    def _write(self, entry: ContextEntry) -> ContextEntry:
        stored = ContextEntry(
            key=self._check_key(entry.key),
            value=entry.value,
            updated_at=entry.updated_at or db.now_iso(),
            updated_by_session=entry.updated_by_session,
        )
        with db.transaction(self.conn):
            self.conn.execute(
                """
                INSERT INTO repo_context(key, value_json, updated_at, updated_by_session)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at,
                    updated_by_session = excluded.updated_by_session
                """,
                (stored.key, db.to_json(stored.value), stored.updated_at, stored.updated_by_session),
            )
        return stored

    def find_by_id(self, key: str) -> ContextEntry | None:
        row = self.conn.execute("SELECT * FROM repo_context WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def get(self, key: str) -> ContextEntry | None:
        return self.find_by_id(key)

    def get_value(self, key: str, default: Any = None) -> Any:
        entry = self.find_by_id(key)
        if entry is None or entry.value is None:
            return default
        return entry.value

    def insert(self, entry: ContextEntry) -> ContextEntry:
        if self.find_by_id(entry.key) is not None:
            raise DuplicateId(self.entity, entry.key)
        return self._write(entry)

    def update(self, key: str, **changes: Any) -> ContextEntry:
        existing = self.find_by_id(key)
        if existing is None:
            raise NotFound(self.entity, key)
        unknown = set(changes) - {"value", "updated_by_session"}
        if unknown:
            raise ValueError(f"Cannot change {', '.join(sorted(unknown))} of context entry")
        return self._write(
            ContextEntry(
                key=key,
                value=changes.get("value", existing.value),
                updated_by_session=changes.get("updated_by_session", existing.updated_by_session),
            )
        )

    def set(self, key: str, value: Any, session_id: str | None = None) -> ContextEntry:
        return self._write(ContextEntry(key=key, value=value, updated_by_session=session_id))

    def set_many(self, values: Mapping[str, Any], session_id: str | None = None) -> None:
        with db.transaction(self.conn):
            for key, value in values.items():
                if value is not None:
                    self.set(key, value, session_id)

    def delete(self, key: str) -> None:
        if self.find_by_id(key) is None:
            raise NotFound(self.entity, key)
        with db.transaction(self.conn):
            self.conn.execute("DELETE FROM repo_context WHERE key = ?", (key,))

    def list(
        self,
        filters: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContextEntry]:
        sql = "SELECT * FROM repo_context"
        params: list[Any] = []
        keys = (filters or {}).get("key")
        if keys:
            keys = [keys] if isinstance(keys, str) else list(keys)
            sql += f" WHERE key IN ({','.join('?' for _ in keys)})"
            params.extend(keys)
        sql += " ORDER BY key"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        return [self._from_row(row) for row in self.conn.execute(sql, params).fetchall()]

    def count(self, filters: dict[str, Any] | None = None) -> int:
        return len(self.list(filters))

    def search(self, query: str, *, limit: int | None = None) -> list[ContextEntry]:
        terms = [term for term in (query or "").split() if term]
        if not terms:
            return []
        clauses = " OR ".join("(key LIKE ? OR value_json LIKE ?)" for _ in terms)
        params: list[Any] = []
        for term in terms:
            params.extend([f"%{term}%", f"%{term}%"])
        rows = self.conn.execute(
            f"SELECT * FROM repo_context WHERE {clauses} ORDER BY updated_at DESC LIMIT ?",
            [*params, limit or self.search_limit],
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def full_context(self) -> dict[str, Any]:
        entries = {entry.key: entry for entry in self.list()}
        context: dict[str, Any] = {key: None for key in KNOWN_CONTEXT_KEYS}
        for key in KNOWN_CONTEXT_KEYS:
            if key in entries:
                context[key] = entries[key].value
        latest = max(entries.values(), key=lambda e: e.updated_at or "", default=None)
        context["last_updated"] = latest.updated_at if latest else None
        context["last_updated_by_session"] = latest.updated_by_session if latest else None
        return context

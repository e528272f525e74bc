from __future__ import annotations

import dataclasses
import re
import sqlite3
from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

from .. import db
from ..errors import DuplicateId, NotFound

R = TypeVar("R")

_TOKEN_RE = re.compile(r"\w+")


def fts_query(query: str) -> str:
    """Quote each term as an FTS5 prefix match and OR them together."""
    tokens = _TOKEN_RE.findall(query or "")
    return " OR ".join(f'"{token}"*' for token in tokens)


class Repository(Generic[R]):
    """CRUD, listing and full-text search over one entity table.

    Subclasses describe the table; the search index (an FTS5 table keyed by
    the primary table's ``row_id``) is written in the same transaction as
    every insert, update and delete, so it never lags a committed row.
    """

    entity: ClassVar[str]
    table: ClassVar[str]
    record_type: ClassVar[type]
    columns: ClassVar[tuple[str, ...]]
    json_columns: ClassVar[frozenset[str]] = frozenset()
    fts_table: ClassVar[str | None] = None
    fts_columns: ClassVar[tuple[str, ...]] = ()
    filter_columns: ClassVar[dict[str, str]] = {}
    order_by: ClassVar[str] = "row_id ASC"
    immutable_fields: ClassVar[frozenset[str]] = frozenset({"id", "created_at"})
    id_prefix: ClassVar[str | None] = None

    def __init__(self, conn: sqlite3.Connection, *, search_limit: int = 20) -> None:
        self.conn = conn
        self.search_limit = search_limit

    # -- row mapping -----------------------------------------------------

    def _to_row(self, record: R) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for column in self.columns:
            value = getattr(record, column)
            row[column] = db.to_json(value) if column in self.json_columns else value
        return row

    def _from_row(self, row: sqlite3.Row) -> R:
        values: dict[str, Any] = {}
        for column in self.columns:
            value = row[column]
            if column in self.json_columns:
                value = db.from_json(value)
            values[column] = value
        return self.record_type(**values)

    def _index_values(self, record: R) -> tuple[Any, ...]:
        values = []
        for column in self.fts_columns:
            value = getattr(record, column)
            if isinstance(value, list):
                value = " ".join(value)
            values.append(value or "")
        return tuple(values)

    def _prepare(self, record: R) -> R:
        """Fill generated fields before a write."""
        return record

    # -- search index ----------------------------------------------------

    def _index_insert(self, row_id: int, record: R) -> None:
        if not self.fts_table:
            return
        placeholders = ", ".join("?" for _ in self.fts_columns)
        self.conn.execute(
            f"INSERT INTO {self.fts_table}(rowid, {', '.join(self.fts_columns)}) "
            f"VALUES (?, {placeholders})",
            (row_id, *self._index_values(record)),
        )

    def _index_delete(self, row_id: int) -> None:
        if not self.fts_table:
            return
        self.conn.execute(f"DELETE FROM {self.fts_table} WHERE rowid = ?", (row_id,))

    # -- lookups ---------------------------------------------------------

    def _row_id(self, record_id: str) -> int | None:
        row = self.conn.execute(
            f"SELECT row_id FROM {self.table} WHERE id = ?",
            (record_id,),
        ).fetchone()
        if row is None:
            return None
        return int(row["row_id"])

    def exists(self, record_id: str) -> bool:
        return self._row_id(record_id) is not None

    def find_by_id(self, record_id: str) -> R | None:
        row = self.conn.execute(
            f"SELECT * FROM {self.table} WHERE id = ?",
            (record_id,),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def find_by_ids(self, record_ids: Sequence[str]) -> list[R]:
        ids = list(record_ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM {self.table} WHERE id IN ({placeholders}) ORDER BY {self.order_by}",
            ids,
        ).fetchall()
        return [self._from_row(row) for row in rows]

    # -- writes ----------------------------------------------------------

    def _stamp(self, record: R) -> R:
        stamps: dict[str, str] = {}
        created_at = getattr(record, "created_at", None)
        if hasattr(record, "created_at") and not created_at:
            created_at = db.now_iso()
            stamps["created_at"] = created_at
        if hasattr(record, "updated_at") and not getattr(record, "updated_at"):
            stamps["updated_at"] = created_at
        if not stamps:
            return record
        return dataclasses.replace(record, **stamps)

    def insert(self, record: R) -> R:
        record = self._prepare(self._stamp(record))
        record_id = getattr(record, "id")
        if self.exists(record_id):
            raise DuplicateId(self.entity, record_id)
        row = self._to_row(record)
        placeholders = ", ".join("?" for _ in row)
        try:
            with db.transaction(self.conn):
                cur = self.conn.execute(
                    f"INSERT INTO {self.table}({', '.join(row)}) VALUES ({placeholders})",
                    tuple(row.values()),
                )
                row_id = cur.lastrowid
                if row_id is None:
                    raise RuntimeError(f"Failed to insert {self.entity} {record_id}")
                self._index_insert(int(row_id), record)
                self._record_allocation(record_id)
        except sqlite3.IntegrityError as exc:
            raise DuplicateId(self.entity, record_id) from exc
        return record

    def update(self, record_id: str, **changes: Any) -> R:
        blocked = set(changes) & self.immutable_fields
        if blocked:
            raise ValueError(f"Cannot change {', '.join(sorted(blocked))} of {self.entity}")
        existing = self.find_by_id(record_id)
        row_id = self._row_id(record_id)
        if existing is None or row_id is None:
            raise NotFound(self.entity, record_id)
        try:
            updated = dataclasses.replace(existing, **changes)
        except TypeError as exc:
            raise ValueError(f"Unknown {self.entity} field: {exc}") from exc
        if hasattr(updated, "updated_at"):
            updated.updated_at = db.now_iso()
        updated = self._prepare(updated)
        row = self._to_row(updated)
        assignments = ", ".join(f"{column} = ?" for column in row)
        with db.transaction(self.conn):
            self.conn.execute(
                f"UPDATE {self.table} SET {assignments} WHERE row_id = ?",
                (*row.values(), row_id),
            )
            self._index_delete(row_id)
            self._index_insert(row_id, updated)
        return updated

    def delete(self, record_id: str) -> None:
        row_id = self._row_id(record_id)
        if row_id is None:
            raise NotFound(self.entity, record_id)
        with db.transaction(self.conn):
            self._index_delete(row_id)
            self.conn.execute(f"DELETE FROM {self.table} WHERE row_id = ?", (row_id,))

    # -- queries ---------------------------------------------------------

    def _filter_clauses(
        self, filters: dict[str, Any] | None, prefix: str = ""
    ) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for key, value in (filters or {}).items():
            if value is None:
                continue
            column = self.filter_columns.get(key)
            if column is None:
                raise ValueError(f"Unsupported {self.entity} filter: {key}")
            qualified = f"{prefix}{column}"
            if isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    continue
                clauses.append(f"{qualified} IN ({','.join('?' for _ in values)})")
                params.extend(values)
            else:
                clauses.append(f"{qualified} = ?")
                params.append(value)
        return clauses, params

    def list(
        self,
        filters: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[R]:
        clauses, params = self._filter_clauses(filters)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT * FROM {self.table} {where} ORDER BY {self.order_by}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(offset)
        rows = self.conn.execute(sql, params).fetchall()
        return [self._from_row(row) for row in rows]

    def count(self, filters: dict[str, Any] | None = None) -> int:
        clauses, params = self._filter_clauses(filters)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        row = self.conn.execute(
            f"SELECT COUNT(*) AS count FROM {self.table} {where}", params
        ).fetchone()
        return int(row["count"])

    def search(
        self,
        query: str,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[R]:
        if not self.fts_table:
            raise NotImplementedError(f"{self.entity} has no search index")
        match = fts_query(query)
        if not match:
            return []
        clauses, params = self._filter_clauses(filters, prefix=f"{self.table}.")
        where = " AND ".join([f"{self.fts_table} MATCH ?", *clauses])
        sql = f"""
            SELECT {self.table}.*
            FROM {self.fts_table}
            JOIN {self.table} ON {self.table}.row_id = {self.fts_table}.rowid
            WHERE {where}
            ORDER BY bm25({self.fts_table}), {self.table}.row_id
            LIMIT ?
        """
        rows = self.conn.execute(
            sql, [match, *params, limit or self.search_limit]
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def _sequence_number(self, record_id: str) -> int | None:
        if not self.id_prefix or not record_id.startswith(self.id_prefix):
            return None
        suffix = record_id[len(self.id_prefix) :]
        return int(suffix) if suffix.isascii() and suffix.isdigit() else None

    def _record_allocation(self, record_id: str) -> None:
        number = self._sequence_number(record_id)
        if number is None:
            return
        self.conn.execute(
            """
            INSERT INTO id_allocations(table_name, highest) VALUES (?, ?)
            ON CONFLICT(table_name) DO UPDATE SET highest = MAX(highest, excluded.highest)
            """,
            (self.table, number),
        )

    def next_id(self, width: int = 3) -> str:
        """Next ``<prefix><number>`` id; numbers of deleted records are never handed out again."""
        if not self.id_prefix:
            raise NotImplementedError(f"{self.entity} ids are not sequential")
        rows = self.conn.execute(
            f"SELECT id FROM {self.table} WHERE id LIKE ?",
            (f"{self.id_prefix}%",),
        ).fetchall()
        numbers = [self._sequence_number(str(row["id"])) for row in rows]
        allocated = self.conn.execute(
            "SELECT highest FROM id_allocations WHERE table_name = ?", (self.table,)
        ).fetchone()
        if allocated is not None:
            numbers.append(int(allocated["highest"]))
        highest = max((n for n in numbers if n is not None), default=0)
        return f"{self.id_prefix}{highest + 1:0{width}d}"

from __future__ import annotations

import dataclasses
import sqlite3

from ..summarization import DEFAULT_MAX_LENGTH, summarize_insight
from .base import Repository
from .types import Insight


class InsightRepository(Repository[Insight]):
    entity = "insight"
    table = "insights"
    record_type = Insight
    columns = (
        "id",
        "content",
        "summary",
        "type",
        "status",
        "tags",
        "links",
        "source",
        "notes",
        "created_at",
        "updated_at",
    )
    json_columns = frozenset({"tags", "links", "source"})
    fts_table = "insights_fts"
    fts_columns = ("content", "summary", "tags")
    filter_columns = {"status": "status", "type": "type"}
    order_by = "created_at DESC, row_id DESC"
    id_prefix = "INS-"

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        search_limit: int = 20,
        summary_max_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        super().__init__(conn, search_limit=search_limit)
        self.summary_max_length = summary_max_length

    def _prepare(self, record: Insight) -> Insight:
        if record.summary:
            return record
        return dataclasses.replace(
            record, summary=summarize_insight(record.content, self.summary_max_length)
        )

    def linked(self, insight_id: str) -> list[Insight]:
        """Insights linked from ``insight_id``; links may point at ids not stored yet."""
        insight = self.find_by_id(insight_id)
        if insight is None:
            return []
        return self.find_by_ids(insight.links)

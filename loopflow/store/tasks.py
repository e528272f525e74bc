from __future__ import annotations

import dataclasses
import logging
import sqlite3

from ..summarization import DEFAULT_MAX_LENGTH, summarize_task
from .base import Repository
from .types import Task

logger = logging.getLogger(__name__)


class TaskRepository(Repository[Task]):
    entity = "task"
    table = "tasks"
    record_type = Task
    columns = (
        "id",
        "title",
        "description",
        "summary",
        "status",
        "priority",
        "depends_on",
        "acceptance_criteria",
        "test_file",
        "notes",
        "created_at",
        "updated_at",
    )
    json_columns = frozenset({"depends_on", "acceptance_criteria"})
    fts_table = "tasks_fts"
    fts_columns = ("title", "description", "summary")
    filter_columns = {"status": "status", "priority": "priority"}
    order_by = "row_id ASC"
    id_prefix = "LF-"

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        search_limit: int = 20,
        summary_max_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        super().__init__(conn, search_limit=search_limit)
        self.summary_max_length = summary_max_length

    def _prepare(self, record: Task) -> Task:
        if record.summary:
            return record
        return dataclasses.replace(
            record, summary=summarize_task(record.title, self.summary_max_length)
        )

    def missing_dependencies(self, task_id: str) -> list[str]:
        """Dependency ids of ``task_id`` that do not resolve to a stored task."""
        task = self.find_by_id(task_id)
        if task is None:
            return []
        known = {dep.id for dep in self.find_by_ids(task.depends_on)}
        missing = [dep for dep in task.depends_on if dep not in known]
        if missing:
            logger.debug("task %s depends on unknown tasks: %s", task_id, ", ".join(missing))
        return missing

    def ready(self) -> list[Task]:
        """TODO tasks whose dependencies are all DONE."""
        done = {task.id for task in self.list({"status": "DONE"})}
        return [
            task
            for task in self.list({"status": "TODO"})
            if all(dep in done for dep in task.depends_on)
        ]

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..errors import MalformedSource, RecordParseError, SourceUnreadable
from ..store.types import (
    DEFAULT_INSIGHT_STATUS,
    DEFAULT_TASK_PRIORITY,
    DEFAULT_TASK_STATUS,
    Insight,
    Task,
)
from .types import ParseResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_json_source(path: Path) -> Any:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceUnreadable(str(path), exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise MalformedSource(str(path), f"not utf-8 text ({exc.reason})") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedSource(str(path), f"invalid json at line {exc.lineno}") from exc


def _envelope(data: Any, key: str, source: str) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        items = data.get(key)
        if isinstance(items, list):
            return items
        raise MalformedSource(source, f"expected a '{key}' list")
    raise MalformedSource(source, f"expected an object with a '{key}' list")


def _optional_str(item: dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _required_str(item: dict[str, Any], key: str) -> str:
    value = _optional_str(item, key)
    if value is None or not value.strip():
        raise ValueError(f"missing '{key}'")
    return value


def _str_list(item: dict[str, Any], key: str) -> list[str]:
    value = item.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return value


def insight_from_legacy(item: Any) -> Insight:
    if not isinstance(item, dict):
        raise ValueError("insight entry is not an object")
    source = item.get("source")
    if source is not None and not isinstance(source, dict):
        raise ValueError("'source' must be an object")
    return Insight(
        id=_required_str(item, "id"),
        content=_required_str(item, "content"),
        type=_required_str(item, "type"),
        status=_optional_str(item, "status") or DEFAULT_INSIGHT_STATUS,
        summary=_optional_str(item, "summary"),
        tags=_str_list(item, "tags"),
        links=_str_list(item, "links"),
        source=source,
        notes=_optional_str(item, "notes"),
        created_at=_optional_str(item, "created_at") or _optional_str(item, "created"),
        updated_at=_optional_str(item, "updated_at"),
    )


def task_from_legacy(item: Any) -> Task:
    if not isinstance(item, dict):
        raise ValueError("task entry is not an object")
    task_id = _required_str(item, "id")
    depends_on = _str_list(item, "depends_on")
    if task_id in depends_on:
        logger.warning("task %s lists itself as a dependency; dropping it", task_id)
        depends_on = [dep for dep in depends_on if dep != task_id]
    criteria = item.get("acceptance_criteria")
    if criteria is not None and not isinstance(criteria, list):
        raise ValueError("'acceptance_criteria' must be a list")
    return Task(
        id=task_id,
        title=_required_str(item, "title"),
        description=_optional_str(item, "description"),
        summary=_optional_str(item, "summary"),
        status=_optional_str(item, "status") or DEFAULT_TASK_STATUS,
        priority=_optional_str(item, "priority") or DEFAULT_TASK_PRIORITY,
        depends_on=depends_on,
        acceptance_criteria=[str(c) for c in criteria or []],
        test_file=_optional_str(item, "test_file"),
        notes=_optional_str(item, "notes"),
    )


def _parse_items(
    items: list[Any], convert: Callable[[Any], T], label: str
) -> ParseResult[T]:
    result: ParseResult[T] = ParseResult()
    for position, item in enumerate(items):
        record_id = item.get("id") if isinstance(item, dict) else None
        try:
            result.records.append(convert(item))
        except ValueError as exc:
            error = RecordParseError(
                position,
                str(exc),
                record_id=record_id if isinstance(record_id, str) else None,
            )
            logger.warning("skipping %s %s", label, error)
            result.errors.append(error)
    return result


def parse_insights_document(data: Any, source: str = "insights") -> ParseResult[Insight]:
    """Map a legacy insights document onto ``Insight`` records.

    Raises ``MalformedSource`` when the envelope is unusable; bad entries are
    reported in ``ParseResult.errors`` instead.
    """
    return _parse_items(_envelope(data, "insights", source), insight_from_legacy, "insight")


def parse_backlog_document(data: Any, source: str = "backlog") -> ParseResult[Task]:
    return _parse_items(_envelope(data, "tasks", source), task_from_legacy, "task")

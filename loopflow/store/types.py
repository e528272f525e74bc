from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final

INSIGHT_TYPES: Final[tuple[str, ...]] = (
    "process",
    "domain",
    "architecture",
    "edge_case",
    "technical",
)
INSIGHT_STATUSES: Final[tuple[str, ...]] = ("unprocessed", "discussed")
TASK_STATUSES: Final[tuple[str, ...]] = (
    "TODO",
    "IN_PROGRESS",
    "DONE",
    "BLOCKED",
    "NEEDS_QA",
    "QA_PASSED",
)
TASK_PRIORITIES: Final[tuple[str, ...]] = ("high", "medium", "low")
SESSION_OUTCOMES: Final[tuple[str, ...]] = ("COMPLETE", "PARTIAL", "BLOCKED", "IN_PROGRESS")
KNOWN_CONTEXT_KEYS: Final[tuple[str, ...]] = (
    "repo_summary",
    "folder_structure",
    "suggested_actions",
)

DEFAULT_INSIGHT_STATUS = "unprocessed"
DEFAULT_TASK_STATUS = "TODO"
DEFAULT_TASK_PRIORITY = "medium"


def _validate_choice(label: str, value: str, allowed: tuple[str, ...]) -> str:
    if value in allowed:
        return value
    raise ValueError(f"Invalid {label} '{value}'. Allowed: {', '.join(allowed)}")


def validate_insight_type(value: str) -> str:
    return _validate_choice("insight type", (value or "").strip().lower(), INSIGHT_TYPES)


def validate_insight_status(value: str) -> str:
    return _validate_choice("insight status", (value or "").strip().lower(), INSIGHT_STATUSES)


def validate_task_status(value: str) -> str:
    return _validate_choice("task status", (value or "").strip().upper(), TASK_STATUSES)


def validate_task_priority(value: str) -> str:
    return _validate_choice("task priority", (value or "").strip().lower(), TASK_PRIORITIES)


def validate_session_outcome(value: str | None) -> str | None:
    if value is None:
        return None
    return _validate_choice("session outcome", value.strip().upper(), SESSION_OUTCOMES)


def unique_strings(values: Any) -> list[str]:
    """Order-preserving de-duplication of non-empty strings."""
    items: list[str] = []
    seen: set[str] = set()
    for value in values or []:
        if not isinstance(value, str):
            raise ValueError(f"expected a string, got {type(value).__name__}")
        text = value.strip()
        if not text or text in seen:
            continue
        seen.add(text)
        items.append(text)
    return items


def session_id_for(date: str, session_number: int, suffix: str = "") -> str:
    return f"{date}-S{int(session_number)}{suffix}"


@dataclass
class Insight:
    id: str
    content: str
    type: str
    status: str = DEFAULT_INSIGHT_STATUS
    summary: str | None = None
    tags: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    source: dict[str, Any] | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("insight id is required")
        if not (self.content or "").strip():
            raise ValueError(f"insight {self.id} has no content")
        self.type = validate_insight_type(self.type)
        self.status = validate_insight_status(self.status)
        self.tags = unique_strings(self.tags)
        self.links = unique_strings(self.links)


@dataclass
class Task:
    id: str
    title: str
    status: str = DEFAULT_TASK_STATUS
    priority: str = DEFAULT_TASK_PRIORITY
    description: str | None = None
    summary: str | None = None
    depends_on: list[str] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    test_file: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("task id is required")
        if not (self.title or "").strip():
            raise ValueError(f"task {self.id} has no title")
        self.status = validate_task_status(self.status)
        self.priority = validate_task_priority(self.priority)
        self.depends_on = unique_strings(self.depends_on)
        if self.id in self.depends_on:
            raise ValueError(f"task {self.id} cannot depend on itself")
        self.acceptance_criteria = [
            str(item) for item in (self.acceptance_criteria or []) if str(item).strip()
        ]


@dataclass
class Session:
    date: str
    session_number: int
    summary: str = ""
    session_suffix: str = ""
    id: str = ""
    title: str | None = None
    task_id: str | None = None
    task_type: str | None = None
    task_title: str | None = None
    outcome: str | None = None
    outcome_reason: str | None = None
    learnings: str | None = None
    files_changed: list[str] | None = None
    insights_added: list[str] | None = None
    created_at: str | None = None

    def __post_init__(self) -> None:
        if not self.date:
            raise ValueError("session date is required")
        self.session_number = int(self.session_number)
        if self.session_number < 0:
            raise ValueError("session number must be non-negative")
        derived = session_id_for(self.date, self.session_number, self.session_suffix)
        if self.id and self.id != derived:
            raise ValueError(f"session id {self.id} does not match {derived}")
        self.id = derived
        self.outcome = validate_session_outcome(self.outcome)
        if isinstance(self.learnings, list):
            self.learnings = "\n".join(f"- {item}" for item in unique_strings(self.learnings))
        if self.files_changed is not None:
            self.files_changed = unique_strings(self.files_changed)
        if self.insights_added is not None:
            self.insights_added = unique_strings(self.insights_added)

    def learning_items(self) -> list[str]:
        if not self.learnings:
            return []
        items = []
        for line in self.learnings.splitlines():
            text = line.strip().lstrip("-*").strip()
            if text:
                items.append(text)
        return items


@dataclass
class ContextEntry:
    key: str
    value: Any
    updated_at: str | None = None
    updated_by_session: str | None = None


@dataclass
class StructuredImportStats:
    insights_imported: int = 0
    tasks_imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class LogImportStats:
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

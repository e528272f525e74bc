from __future__ import annotations

from ._store import LoopFlowStore
from .insights import InsightRepository
from .repo_context import RepoContextRepository
from .sessions import SessionRepository
from .tasks import TaskRepository
from .types import (
    ContextEntry,
    Insight,
    LogImportStats,
    Session,
    StructuredImportStats,
    Task,
)

__all__ = [
    "ContextEntry",
    "Insight",
    "InsightRepository",
    "LogImportStats",
    "LoopFlowStore",
    "RepoContextRepository",
    "Session",
    "SessionRepository",
    "StructuredImportStats",
    "Task",
    "TaskRepository",
]

from __future__ import annotations

from .progress_log import parse_progress_log
from .structured import parse_backlog_document, parse_insights_document
from .types import ParseResult

__all__ = [
    "ParseResult",
    "parse_backlog_document",
    "parse_insights_document",
    "parse_progress_log",
]

"""Recover session records from a hand-written ``progress.txt`` log.

The log is a sequence of blocks, each opened by a header such as::

    ## 2026-01-22 | Session 21 (Skills Cleanup)
    Task: LF-078 [IMPL] Remove obsolete skills
    Outcome: COMPLETE

    ### Summary
    ...

    ### Learnings
    - ...

    ---

Only the header is mandatory. Anything before the first header is preamble.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path

from ..errors import MalformedSource, RecordParseError, SourceUnreadable
from ..store.types import SESSION_OUTCOMES, Session
from .types import ParseResult

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY_CHARS = 500

_BLOCK_START_RE = re.compile(r"^##[ \t]+(?=\d{4}-\d{2}-\d{2}|session\b)", re.IGNORECASE | re.MULTILINE)
_HEADER_RE = re.compile(
    r"^##\s+(\d{4}-\d{2}-\d{2})\s*\|\s*Session\s+(\d+)([a-z]?)\s*(?:\(([^)]*)\))?.*$",
    re.IGNORECASE,
)
_TASK_LINE_RE = re.compile(r"^Task:[ \t]*(.*)$", re.MULTILINE)
_TASK_REF_RE = re.compile(r"^(?:([A-Z]+-\d+(?:\.\d+)?)\b\s*)?(\[[A-Z]+\])?\s*(.*)$")
_OUTCOME_LINE_RE = re.compile(r"^Outcome:[ \t]*(.*)$", re.MULTILINE)
_SECTION_RE = re.compile(r"^###[ \t]*(.+?)[ \t]*$", re.MULTILINE)
_FIELD_LINE_RE = re.compile(r"^(?:Task|Outcome|Manual QA)[ \t]*:", re.IGNORECASE)
_DELIMITER_RE = re.compile(r"^-{3,}[ \t]*$", re.MULTILINE)
_BACKTICK_PATH_RE = re.compile(r"`([\w./-]+\.[A-Za-z0-9]{1,5})`")
_INSIGHT_ID_RE = re.compile(r"\bINS-\d{3,}\b")

_FILE_SECTIONS = ("files changed", "files modified", "files")
_LEARNING_SECTIONS = ("learnings", "learning")


def read_log_source(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceUnreadable(str(path), exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise MalformedSource(str(path), f"not utf-8 text ({exc.reason})") from exc


def split_blocks(text: str) -> list[str]:
    starts = [m.start() for m in _BLOCK_START_RE.finditer(text)]
    blocks = []
    for index, start in enumerate(starts):
        end = starts[index + 1] if index + 1 < len(starts) else len(text)
        blocks.append(text[start:end])
    return blocks


def parse_outcome(text: str | None) -> tuple[str | None, str | None]:
    """Split ``BLOCKED: waiting on review`` into its outcome and reason.

    Unrecognised outcomes are not guessed: the outcome is None and the text
    is kept as the reason.
    """
    value = (text or "").strip()
    if not value:
        return None, None
    match = re.match(r"^([A-Za-z_]+)\s*[:\-(]?\s*(.*?)\)?\s*$", value)
    if match:
        token = match.group(1).upper()
        if token in SESSION_OUTCOMES:
            return token, match.group(2).strip() or None
    return None, value


def parse_task_reference(text: str | None) -> tuple[str | None, str | None, str | None]:
    value = (text or "").strip()
    if not value or value.upper().startswith("N/A"):
        return None, None, None
    match = _TASK_REF_RE.match(value)
    if not match:
        return None, None, value
    return match.group(1), match.group(2), (match.group(3) or "").strip() or None


def _sections(body: str) -> dict[str, str]:
    sections: dict[str, str] = {}
    matches = list(_SECTION_RE.finditer(body))
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        name = match.group(1).strip().lower()
        sections.setdefault(name, body[match.end() : end].strip())
    return sections


def _bullets(text: str) -> list[str]:
    items = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped[:1] in {"-", "*"}:
            item = stripped[1:].strip().strip("`").strip()
            if item:
                items.append(item)
    return items


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _fallback_summary(body: str) -> str:
    lines = [line for line in body.splitlines() if not _FIELD_LINE_RE.match(line.strip())]
    return "\n".join(lines).strip()[:FALLBACK_SUMMARY_CHARS].strip()


def parse_session_block(block: str) -> Session:
    """Parse one block; raises ``ValueError`` when the header is unusable."""
    header, _, rest = block.partition("\n")
    match = _HEADER_RE.match(header.strip())
    if not match:
        raise ValueError(f"unrecognised session header: {header.strip()[:80]}")
    date_text, number_text, suffix, title = match.groups()
    try:
        dt.date.fromisoformat(date_text)
    except ValueError as exc:
        raise ValueError(f"invalid session date {date_text}") from exc

    body = _DELIMITER_RE.split(rest, maxsplit=1)[0]
    task_line = _TASK_LINE_RE.search(body)
    task_id, task_type, task_title = parse_task_reference(task_line.group(1) if task_line else None)
    outcome_line = _OUTCOME_LINE_RE.search(body)
    outcome, outcome_reason = parse_outcome(outcome_line.group(1) if outcome_line else None)

    sections = _sections(body)
    summary = sections.get("summary") or _fallback_summary(body[: _first_section_start(body)])
    learnings = next((sections[name] for name in _LEARNING_SECTIONS if sections.get(name)), None)

    files: list[str] = []
    for name in _FILE_SECTIONS:
        if sections.get(name):
            files.extend(_bullets(sections[name]))
    if not files:
        files = _BACKTICK_PATH_RE.findall(body)
    insights = _INSIGHT_ID_RE.findall(body)

    return Session(
        date=date_text,
        session_number=int(number_text),
        session_suffix=(suffix or "").lower(),
        title=(title or "").strip() or None,
        task_id=task_id,
        task_type=task_type,
        task_title=task_title,
        outcome=outcome,
        outcome_reason=outcome_reason,
        summary=summary,
        learnings=learnings,
        files_changed=_unique(files) or None,
        insights_added=_unique(insights) or None,
    )


def _first_section_start(body: str) -> int:
    match = _SECTION_RE.search(body)
    return match.start() if match else len(body)


def parse_progress_log(text: str) -> ParseResult[Session]:
    result: ParseResult[Session] = ParseResult()
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    for position, block in enumerate(split_blocks(text)):
        try:
            result.records.append(parse_session_block(block))
        except ValueError as exc:
            error = RecordParseError(position, str(exc))
            logger.warning("skipping progress log block %s", error)
            result.errors.append(error)
    return result

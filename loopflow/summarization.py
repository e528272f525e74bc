from __future__ import annotations

import re

DEFAULT_MAX_LENGTH = 100
SHORT_CONTENT_THRESHOLD = 150

_SENTENCE_END_RE = re.compile(r"[.!?]")
_TYPE_PREFIX_RE = re.compile(r"^\[([A-Z]+)\]\s*")


def extract_first_sentence(text: str) -> str:
    trimmed = (text or "").strip()
    match = _SENTENCE_END_RE.search(trimmed)
    if match:
        return trimmed[: match.end()]
    return trimmed


def truncate_at_word(text: str, max_length: int) -> str:
    """Shorten ``text`` to at most ``max_length`` characters, ending in ``...``."""
    if len(text) <= max_length:
        return text
    budget = max_length - 3
    if budget <= 0:
        return "..."[:max_length]
    truncated = text[:budget]
    last_space = truncated.rfind(" ")
    if last_space > budget * 0.5:
        return truncated[:last_space] + "..."
    return truncated + "..."


def summarize_insight(content: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    return truncate_at_word(extract_first_sentence(content), max_length)


def summarize_task(title: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    title = (title or "").strip()
    match = _TYPE_PREFIX_RE.match(title)
    if match:
        prefix = match.group(0)
        return prefix + truncate_at_word(title[len(prefix) :], max_length - len(prefix))
    return truncate_at_word(title, max_length)


def is_short_content(content: str, threshold: int = SHORT_CONTENT_THRESHOLD) -> bool:
    return len(content) <= threshold


def maybe_generate_summary(
    content: str, kind: str, max_length: int = DEFAULT_MAX_LENGTH
) -> str | None:
    if is_short_content(content, int(max_length * 1.5)):
        return None
    if kind == "insight":
        return summarize_insight(content, max_length)
    if kind == "task":
        return summarize_task(content, max_length)
    raise ValueError(f"Unsupported summary kind '{kind}'")

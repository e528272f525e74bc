from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..errors import RecordParseError

T = TypeVar("T")


@dataclass
class ParseResult(Generic[T]):
    records: list[T] = field(default_factory=list)
    errors: list[RecordParseError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.errors)

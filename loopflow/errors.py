from __future__ import annotations


class LoopFlowError(Exception):
    """Base exception for store, import, and migration failures."""

    code = "LOOPFLOW_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SchemaMigrationFailure(LoopFlowError):
    code = "SCHEMA_MIGRATION_FAILED"

    def __init__(self, message: str, *, from_version: int) -> None:
        super().__init__(message)
        self.from_version = from_version


class DuplicateId(LoopFlowError):
    code = "DUPLICATE_ID"

    def __init__(self, entity: str, record_id: str) -> None:
        super().__init__(f"{entity} {record_id} already exists")
        self.entity = entity
        self.record_id = record_id


class NotFound(LoopFlowError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, record_id: str) -> None:
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class SourceUnreadable(LoopFlowError):
    """The legacy source could not be read at all; nothing was imported from it."""

    code = "SOURCE_UNREADABLE"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class MalformedSource(SourceUnreadable):
    code = "MALFORMED_SOURCE"


class RecordParseError(LoopFlowError):
    """One legacy record was rejected. Never raised out of an import."""

    code = "RECORD_PARSE_ERROR"

    def __init__(self, position: int, reason: str, *, record_id: str | None = None) -> None:
        label = f"record {position}" if record_id is None else f"record {position} ({record_id})"
        super().__init__(f"{label}: {reason}")
        self.position = position
        self.reason = reason
        self.record_id = record_id

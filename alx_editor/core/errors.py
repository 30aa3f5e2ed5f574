"""Exception types raised by the data engine."""
from __future__ import annotations

from typing import Any, Sequence


class AlxError(RuntimeError):
    """Base class for every engine failure."""


class IoError(AlxError):
    """Raised when reading or writing the disc image fails."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(f"{message}: {path}" if path else message)
        self.path = path


class CorruptData(AlxError):
    """Raised when a compressed stream or a binary structure cannot be decoded."""

    def __init__(self, message: str, offset: int | None = None, source: str | None = None) -> None:
        where = []
        if source:
            where.append(source)
        if offset is not None:
            where.append(f"offset 0x{offset:X}")
        super().__init__(f"{message} ({', '.join(where)})" if where else message)
        self.offset = offset
        self.source = source


class NotAGameImage(AlxError):
    """Raised when a file is not a usable disc image."""


class CountMismatch(AlxError):
    """Raised when a record collection does not match the descriptor count."""

    def __init__(self, type_name: str, expected: int, actual: int) -> None:
        super().__init__(f"{type_name}: expected {expected} records, got {actual}")
        self.type_name = type_name
        self.expected = expected
        self.actual = actual


class FieldError(AlxError):
    """Raised when a single field value cannot be encoded."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason


class FieldOutOfRange(FieldError):
    """Value is not representable by the field type or lies outside its domain."""


class FieldTooLong(FieldError):
    """Encoded string does not fit the field width."""


class ValidationFailed(AlxError):
    """Raised when an import batch with issues is required to be clean."""

    def __init__(self, type_name: str, issues: Sequence[object]) -> None:
        super().__init__(f"{type_name}: {len(issues)} validation issue(s)")
        self.type_name = type_name
        self.issues = list(issues)


__all__ = [
    "AlxError",
    "IoError",
    "CorruptData",
    "NotAGameImage",
    "CountMismatch",
    "FieldError",
    "FieldOutOfRange",
    "FieldTooLong",
    "ValidationFailed",
]

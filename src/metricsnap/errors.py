"""Exception types shared by extractors, the snapshot store and plugins."""

from __future__ import annotations


class MetricsnapError(Exception):
    """Base class for all metricsnap errors."""


class ParseError(MetricsnapError):
    """Raw input could not be read as the expected format.

    *line* is the 1-based line number for text inputs, *field* the offending
    key for document inputs.
    """

    def __init__(self, message: str, line: int | None = None, field: str | None = None) -> None:
        self.message = message
        self.line = line
        self.field = field
        where = ""
        if line is not None:
            where = f" (line {line})"
        elif field is not None:
            where = f" (field {field!r})"
        super().__init__(f"{message}{where}")


class KeyNotFound(MetricsnapError):
    """A key along a document path does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"{key} not found")


class TypeMismatch(MetricsnapError):
    """A document node does not have the shape the path expects."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"cannot handle as a map for {key}")


class PersistenceFailure(MetricsnapError):
    """The new baseline could not be written."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to persist baseline to {path}: {reason}")


class SourceUnavailable(MetricsnapError):
    """Raw input could not be acquired (missing file, failed command, unreachable server)."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")

"""Exception classes for snapassert.

Provides standardized exceptions for error handling throughout snapassert.
``OSError`` from reading or writing source files is not wrapped; it
propagates to the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class SnapError(Exception):
    """Base exception for all snapassert errors.

    Subclass this for specific error categories.
    """

    pass


class ParseError(SnapError):
    """Error while parsing a source file.

    Raised when the file is not valid Python or cannot be decoded.
    No write is attempted after a ParseError.
    """

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> None:
        """Initialize parse error with optional location.

        Args:
            message: Error description
            lineno: Line number where error occurred (1-indexed)
            col_offset: Column offset where error occurred (1-indexed)
            source_file: Path to source file (optional)
        """
        self.message = message
        self.lineno = lineno
        self.col_offset = col_offset
        self.source_file = source_file

        location = ""
        if source_file:
            location = f"{source_file}:"
        if lineno is not None:
            location += f"{lineno}:"
            if col_offset is not None:
                location += f"{col_offset}:"
        if location:
            location = location.rstrip(":") + " "

        super().__init__(f"{location}{message}")


class LocatorMissError(SnapError):
    """No single-argument marker call was found on the requested line.

    Only raised in strict mode. By default a miss is a logged no-op.
    """

    def __init__(self, line: int, source_file: str | None = None) -> None:
        self.line = line
        self.source_file = source_file
        where = f"{source_file}:{line}" if source_file else f"line {line}"
        super().__init__(f"No single-argument marker call found at {where}")


class UnrenderableValueError(SnapError):
    """A value has no Python source form that can be embedded in a call."""

    def __init__(self, value: Any, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot render {type(value).__name__} value as source: {reason}")


class PatchConflictError(SnapError):
    """Two patches target overlapping ranges of the same text."""

    pass


class LockTimeoutError(SnapError, TimeoutError):
    """The lock on a source file could not be acquired in time."""

    def __init__(self, path: str, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock on {path}")

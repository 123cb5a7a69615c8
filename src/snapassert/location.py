"""Source ranges for syntax nodes and patches.

Provides the SourceRange dataclass for tracking spans of source text.
``lineno``/``end_lineno`` are 1-indexed; ``col_offset``/``end_col_offset``
are 0-indexed character columns; ``offset``/``end_offset`` are character
offsets into the decoded source text, end-exclusive.

Thread Safety:
SourceRange is frozen (immutable) and safe to share across threads.

"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SourceRange:
    """Half-open span ``[offset, end_offset)`` of a source text.

    Attributes:
        lineno: Starting line number (1-indexed)
        col_offset: Starting column, in characters (0-indexed)
        offset: Absolute start offset in the source text
        end_offset: Absolute end offset in the source text (exclusive)
        end_lineno: Ending line number (optional)
        end_col_offset: Ending column, in characters (optional)
        source_file: Source file path (optional)

    Examples:
        >>> rng = SourceRange(lineno=5, col_offset=4, offset=60, end_offset=77)
        >>> len(rng)
        17
        >>> str(SourceRange(5, 4, source_file="tests/test_x.py"))
        'tests/test_x.py:5:4'

    """

    lineno: int
    col_offset: int
    offset: int = 0
    end_offset: int = 0
    end_lineno: int | None = None
    end_col_offset: int | None = None
    source_file: str | None = None

    def __str__(self) -> str:
        """Format range start for log and error messages."""
        if self.source_file:
            return f"{self.source_file}:{self.lineno}:{self.col_offset}"
        return f"{self.lineno}:{self.col_offset}"

    def __len__(self) -> int:
        return self.end_offset - self.offset

    def contains(self, other: SourceRange) -> bool:
        """True if ``other`` lies entirely inside this range."""
        return self.offset <= other.offset and other.end_offset <= self.end_offset

    def relative_to(self, outer: SourceRange) -> tuple[int, int]:
        """Return ``(start, end)`` of this range as offsets inside ``outer``."""
        return self.offset - outer.offset, self.end_offset - outer.offset

"""Position-aware parser producing typed call nodes.

Parses Python source with the standard library ``ast`` module and keeps
only call expressions, converted to frozen ``Call`` nodes whose ranges map
back to exact character offsets of the original text.

Architecture:
- ``ast`` reports columns as UTF-8 byte offsets within a line. ``_LineIndex``
  converts (lineno, byte column) pairs to character offsets, splitting lines
  the way the Python tokenizer does (``\\r\\n``, ``\\r`` and ``\\n`` only).
- ``ast`` ranges exclude redundant parentheses. Argument extents are widened
  by scanning the text between arguments, which can only hold whitespace,
  comments, line continuations, parentheses and commas.

Thread Safety:
- Parser instances are single-use and not thread-safe
- The resulting Module is immutable and safe to share across threads

"""

from __future__ import annotations

import ast
import io
import re
import tokenize
from collections.abc import Iterator

from snapassert.errors import ParseError
from snapassert.location import SourceRange
from snapassert.nodes import Argument, Call, Module

_NEWLINE = re.compile(r"\r\n|\r|\n")

_WHITESPACE = frozenset(" \t\f\r\n")


class _LineIndex:
    """Maps ``ast`` (lineno, byte column) positions to character offsets."""

    __slots__ = ("_source", "_starts")

    def __init__(self, source: str) -> None:
        self._source = source
        self._starts = [0]
        self._starts.extend(match.end() for match in _NEWLINE.finditer(source))

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def offset(self, lineno: int, byte_col: int) -> int:
        start = self._starts[lineno - 1]
        if byte_col == 0:
            return start
        end = self._starts[lineno] if lineno < len(self._starts) else len(self._source)
        line = self._source[start:end]
        if line.isascii():
            return start + byte_col
        return start + len(line.encode("utf-8")[:byte_col].decode("utf-8"))

    def column(self, lineno: int, offset: int) -> int:
        return offset - self._starts[lineno - 1]

    def lineno(self, offset: int) -> int:
        lo, hi = 0, len(self._starts) - 1
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self._starts[mid] <= offset:
                lo = mid
            else:
                hi = mid - 1
        return lo + 1


def decode_source(data: bytes, source_file: str | None = None) -> tuple[str, str]:
    """Decode raw file content, honoring a BOM or PEP 263 coding cookie.

    Line endings are preserved exactly; no newline translation happens.

    Returns:
        ``(text, encoding)``. Encode ``text`` with ``encoding`` to get the
        original bytes back.

    Raises:
        ParseError: Unknown encoding or bytes invalid for the encoding.

    """
    try:
        encoding, _ = tokenize.detect_encoding(io.BytesIO(data).readline)
        return data.decode(encoding), encoding
    except SyntaxError as e:
        raise ParseError(str(e), source_file=source_file) from e
    except (LookupError, UnicodeDecodeError) as e:
        raise ParseError(f"cannot decode source: {e}", source_file=source_file) from e


def _dotted_name(node: ast.expr) -> str | None:
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


def _iter_call_nodes(tree: ast.AST) -> Iterator[ast.Call]:
    """Yield every ``ast.Call`` in stable pre-order (source order)."""
    stack: list[ast.AST] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, ast.Call):
            yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


class Parser:
    """Parser for Python source, producing a Module of Call nodes.

    Usage:
            >>> module = Parser('snap_assert(upper("hi"))\\n').parse()
            >>> module.calls[0].name
            'snap_assert'
            >>> module.calls[0].args[0].source
            'upper("hi")'

    Thread Safety:
        Parser instances are single-use and not thread-safe. Create one per
        parse operation. The resulting Module is immutable and thread-safe.

    """

    __slots__ = ("_source", "_source_file", "_index")

    def __init__(self, source: str, source_file: str | None = None) -> None:
        """Initialize parser with source text.

        Args:
            source: Python source text (already decoded)
            source_file: Optional source file path for ranges and errors

        """
        self._source = source
        self._source_file = source_file
        self._index = _LineIndex(source)

    def parse(self) -> Module:
        """Parse the source and collect its calls.

        Raises:
            ParseError: If the source is not valid Python.

        """
        try:
            tree = ast.parse(self._source, filename=self._source_file or "<unknown>")
        except SyntaxError as e:
            raise ParseError(
                e.msg,
                lineno=e.lineno,
                col_offset=e.offset,
                source_file=self._source_file,
            ) from e
        except ValueError as e:
            raise ParseError(str(e), source_file=self._source_file) from e

        calls = tuple(self._convert_call(node) for node in _iter_call_nodes(tree))
        location = SourceRange(
            lineno=1,
            col_offset=0,
            offset=0,
            end_offset=len(self._source),
            end_lineno=self._index.line_count,
            source_file=self._source_file,
        )
        return Module(location=location, source=self._source, calls=calls)

    # -- Ranges -----------------------------------------------------------------

    def _range(self, start: int, end: int) -> SourceRange:
        lineno = self._index.lineno(start)
        end_lineno = self._index.lineno(end)
        return SourceRange(
            lineno=lineno,
            col_offset=self._index.column(lineno, start),
            offset=start,
            end_offset=end,
            end_lineno=end_lineno,
            end_col_offset=self._index.column(end_lineno, end),
            source_file=self._source_file,
        )

    def _bounds(self, node: ast.expr | ast.keyword) -> tuple[int, int]:
        start = self._index.offset(node.lineno, node.col_offset)
        end = self._index.offset(node.end_lineno, node.end_col_offset)  # type: ignore[arg-type]
        return start, end

    def _skip_trivia(self, pos: int, limit: int) -> int:
        """Advance past whitespace, comments and line continuations."""
        source = self._source
        while pos < limit:
            char = source[pos]
            if char in _WHITESPACE:
                pos += 1
            elif char == "\\":
                pos += 1
            elif char == "#":
                match = _NEWLINE.search(source, pos, limit)
                pos = match.start() if match else limit
            else:
                break
        return pos

    # -- Conversion -------------------------------------------------------------

    def _convert_call(self, node: ast.Call) -> Call:
        source = self._source
        start, end = self._bounds(node)

        # Skip past the callee and any parentheses around it.
        pos = self._bounds(node.func)[1]
        while True:
            pos = self._skip_trivia(pos, end)
            if source[pos] != ")":
                break
            pos += 1
        open_paren = pos

        ordered: list[tuple[int, int, ast.expr | ast.keyword]] = []
        for arg in node.args:
            ordered.append((*self._bounds(arg), arg))
        for kw in node.keywords:
            ordered.append((*self._bounds(kw), kw))
        # Keywords may precede trailing *args in the source.
        ordered.sort(key=lambda item: item[0])

        args: list[Argument] = []
        boundary = open_paren + 1
        for arg_start, arg_end, arg in ordered:
            if arg_start <= open_paren:
                # Bare generator expression sharing the call's parentheses.
                ext_start, ext_end = arg_start, arg_end
            else:
                ext_start, ext_end = self._extent(boundary, arg_start, arg_end, end)
            keyword = arg.arg if isinstance(arg, ast.keyword) else None
            starred = isinstance(arg, ast.Starred) or (
                isinstance(arg, ast.keyword) and arg.arg is None
            )
            args.append(
                Argument(
                    location=self._range(ext_start, ext_end),
                    source=source[ext_start:ext_end],
                    keyword=keyword,
                    starred=starred,
                )
            )
            boundary = ext_end

        return Call(
            location=self._range(start, end),
            source=source[start:end],
            name=_dotted_name(node.func),
            args=tuple(args),
            open_paren=open_paren - start,
        )

    def _extent(self, boundary: int, arg_start: int, arg_end: int, limit: int) -> tuple[int, int]:
        """Widen an argument's range to cover redundant parentheses."""
        source = self._source
        pos = self._skip_trivia(boundary, arg_start)
        if pos < arg_start and source[pos] == ",":
            pos = self._skip_trivia(pos + 1, arg_start)
        ext_start = pos

        depth = 0
        while pos < arg_start:
            if source[pos] == "(":
                depth += 1
            pos = self._skip_trivia(pos + 1, arg_start)

        ext_end = arg_end
        pos = arg_end
        while depth:
            pos = self._skip_trivia(pos, limit)
            if source[pos] != ")":
                break
            pos += 1
            ext_end = pos
            depth -= 1
        return ext_start, ext_end


def parse(source: str, *, source_file: str | None = None) -> Module:
    """Parse Python source into a Module of call nodes.

    Args:
        source: Python source text
        source_file: Optional source file path for error messages

    Returns:
        Module whose ``calls`` are in pre-order

    Raises:
        ParseError: If the source is not valid Python.

    """
    return Parser(source, source_file).parse()

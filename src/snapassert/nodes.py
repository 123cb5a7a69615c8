"""Typed syntax nodes for snapassert.

The parser does not mirror the full Python grammar. It keeps only what the
patching engine needs: every call expression in a file, with its callee
name, its arguments and the exact source text of each.

All nodes are frozen dataclasses with slots, so a parsed Module can be
shared freely and is never mutated; a patch is computed from a node, never
applied to it.

Node Hierarchy:
Node (base)
├── Module
├── Call
└── Argument

Thread Safety:
All nodes are frozen (immutable) and safe to share across threads.

"""

from collections.abc import Iterator
from dataclasses import dataclass

from snapassert.location import SourceRange


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all syntax nodes.

    All nodes track their source range and keep their original text.

    """

    location: SourceRange
    source: str


@dataclass(frozen=True, slots=True)
class Argument(Node):
    """One argument of a call.

    ``source`` is lossless: it includes redundant parentheses around the
    expression and any comments inside them.

    Attributes:
        keyword: Keyword name for ``name=value`` arguments, else None
        starred: True for ``*args`` and ``**kwargs`` arguments

    """

    keyword: str | None = None
    starred: bool = False

    @property
    def positional(self) -> bool:
        return self.keyword is None and not self.starred


@dataclass(frozen=True, slots=True)
class Call(Node):
    """A call expression.

    ``name`` is the dotted callee name (``"snap_assert"``,
    ``"snapassert.snap_assert"``) or None when the callee is not a plain
    name or attribute chain (``f()()``, ``obj[0](x)``).

    ``open_paren`` is the offset of the call's opening parenthesis relative
    to ``location.offset``; the closing parenthesis is always the last
    character of ``source``.

    """

    name: str | None
    args: tuple[Argument, ...]
    open_paren: int

    @property
    def lineno(self) -> int:
        return self.location.lineno

    @property
    def positional_args(self) -> tuple[Argument, ...]:
        return tuple(arg for arg in self.args if arg.positional)

    @property
    def is_single_argument(self) -> bool:
        """True for ``name(arg)``: one positional argument, nothing else."""
        return len(self.args) == 1 and len(self.positional_args) == 1


@dataclass(frozen=True, slots=True)
class Module(Node):
    """A parsed source file.

    ``calls`` holds every call in the file in pre-order: an outer call comes
    before the calls nested in its callee and arguments, and sibling
    statements keep source order.

    """

    calls: tuple[Call, ...]

    def __iter__(self) -> Iterator[Call]:
        return iter(self.calls)

    def calls_on_line(self, lineno: int) -> Iterator[Call]:
        return (call for call in self.calls if call.location.lineno == lineno)

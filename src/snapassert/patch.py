"""Build and apply text patches.

A Patch pairs a source range with replacement text. ``build_patch`` turns a
matched single-argument call into a two-argument call; ``apply_patches``
splices any number of non-overlapping patches into the original text,
copying everything outside their ranges verbatim.

Only the call's argument list changes. The callee spelling, parentheses,
comments, whitespace and a trailing comma are taken from the original call
text, so the replacement is as small as the new argument allows.

Example:
    >>> from snapassert.parser import parse
    >>> source = 'snap_assert(upper("hi"))\\n'
    >>> call = parse(source).calls[0]
    >>> apply_patches(source, [build_patch(call, "HI")])
    'snap_assert(upper("hi"), \\'HI\\')\\n'

Thread Safety:
    Pure functions over immutable values. Safe to call from any thread.

"""

import ast
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from snapassert.errors import PatchConflictError, SnapError
from snapassert.location import SourceRange
from snapassert.nodes import Call
from snapassert.render import render_value


class ArgumentOrder(Enum):
    """Where the embedded value goes relative to the existing argument."""

    APPEND = "append"
    PREPEND = "prepend"


@dataclass(frozen=True, slots=True)
class Patch:
    """Replace the text in ``location`` with ``replacement``."""

    location: SourceRange
    replacement: str


def build_patch(
    call: Call,
    value: Any,
    order: ArgumentOrder = ArgumentOrder.APPEND,
    *,
    namespace: Mapping[str, Any] | None = None,
) -> Patch:
    """Render ``call`` with ``value`` added to its argument list.

    Args:
        call: A single-argument call (see ``Call.is_single_argument``)
        value: Value to embed
        order: ``APPEND`` gives ``name(arg, value)``,
            ``PREPEND`` gives ``name(value, arg)``
        namespace: Calling module's globals, for spelling class references

    Returns:
        Patch covering exactly the call's original range

    Raises:
        UnrenderableValueError: If ``value`` has no source form.
        ValueError: If ``call`` is not single-argument, or its argument
            lies outside the call's range.

    """
    if not call.is_single_argument:
        raise ValueError(f"expected a single-argument call, got {len(call.args)} arguments")

    rendered = render_value(value, namespace=namespace)
    arg = call.args[0]
    if not call.location.contains(arg.location):
        raise ValueError(f"argument at {arg.location} lies outside the call at {call.location}")
    start, end = arg.location.relative_to(call.location)

    if start <= call.open_paren:
        # Generator expression sharing the call's parentheses: arg.source
        # already carries a pair of parentheses of its own.
        head = call.source[: call.open_paren + 1]
        tail = ")"
    else:
        head = call.source[:start]
        tail = call.source[end:]

    if order is ArgumentOrder.APPEND:
        body = f"{arg.source}, {rendered}"
    else:
        body = f"{rendered}, {arg.source}"

    replacement = f"{head}{body}{tail}"
    _check_replacement(replacement, call)
    return Patch(location=call.location, replacement=replacement)


def _check_replacement(replacement: str, call: Call) -> None:
    # Parenthesized so a callee continued on the next line still parses.
    try:
        tree = ast.parse(f"({replacement}\n)", mode="eval")
    except SyntaxError as e:
        raise SnapError(f"{call.location}: patched call does not parse: {e.msg}") from e
    body = tree.body
    if not isinstance(body, ast.Call) or len(body.args) + len(body.keywords) != 2:
        raise SnapError(f"{call.location}: patched call has an unexpected shape")


def apply_patches(source: str, patches: Iterable[Patch]) -> str:
    """Splice patches into ``source``.

    Patches may be given in any order; they are applied in range order.
    With no patches, returns ``source`` unchanged.

    Raises:
        PatchConflictError: If two patches overlap or a range falls
            outside the source.

    """
    ordered = sorted(patches, key=lambda patch: (patch.location.offset, patch.location.end_offset))
    if not ordered:
        return source

    parts: list[str] = []
    cursor = 0
    for patch in ordered:
        rng = patch.location
        if rng.offset < cursor:
            raise PatchConflictError(f"patch at {rng} overlaps a previous patch")
        if rng.end_offset > len(source) or rng.end_offset < rng.offset:
            raise PatchConflictError(f"patch at {rng} is outside the source text")
        parts.append(source[cursor : rng.offset])
        parts.append(patch.replacement)
        cursor = rng.end_offset
    parts.append(source[cursor:])
    return "".join(parts)

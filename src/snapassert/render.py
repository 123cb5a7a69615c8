"""Render runtime values as Python source text.

The rendered text is what gets embedded in a marker call, so it must parse
as a Python expression and, evaluated in the calling module, produce a
value equal to the original.

Rendering rules:
- Scalars (None, bool, int, str, bytes, Ellipsis, finite floats): ``repr``.
  Strings therefore use Python's own quoting: ``"HI"`` is written as
  ``'HI'``, and double quotes appear only when the text holds a ``'``.
- Non-finite floats: ``float('inf')``, ``float('-inf')``, ``float('nan')``;
  complex numbers with a non-finite part: ``complex(<real>, <imag>)``
- list, tuple, dict, set, frozenset: rendered element by element
- Classes: a dotted reference, spelled the way the calling module sees it
- Enum members: ``<class reference>.<member name>``
- Anything else: ``repr`` if it parses as an expression and is not an
  angle-bracket default repr such as ``<object at 0x...>``

Thread Safety:
    Pure functions. Safe to call from any thread.

"""

import ast
import enum
import math
import sys
import types
from collections.abc import Mapping
from typing import Any

from snapassert.errors import UnrenderableValueError

_SCALAR_TYPES = (type(None), bool, int, str, bytes, type(Ellipsis))


def render_value(value: Any, *, namespace: Mapping[str, Any] | None = None) -> str:
    """Render ``value`` as Python source.

    Args:
        value: Runtime value to embed
        namespace: Globals of the calling module, used to spell class
            references (``Name``, ``alias.Name``). When None, non-builtin
            classes are spelled ``module.QualName``.

    Returns:
        Source text that parses in ``eval`` mode

    Raises:
        UnrenderableValueError: If the value has no source form.

    Example:
        >>> render_value({"a": (1,), "b": float("inf")})
        "{'a': (1,), 'b': float('inf')}"
        >>> render_value(ValueError)
        'ValueError'

    """
    return _render(value, namespace, set())


def _render(value: Any, namespace: Mapping[str, Any] | None, active: set[int]) -> str:
    kind = type(value)

    if kind in _SCALAR_TYPES:
        return repr(value)

    if kind is float:
        if math.isnan(value):
            return "float('nan')"
        if math.isinf(value):
            return "float('inf')" if value > 0 else "float('-inf')"
        return repr(value)

    if kind is complex:
        if not (math.isfinite(value.real) and math.isfinite(value.imag)):
            real = _render(value.real, namespace, active)
            imag = _render(value.imag, namespace, active)
            return f"complex({real}, {imag})"
        return repr(value)

    if isinstance(value, type):
        return class_reference(value, namespace)

    if isinstance(value, enum.Enum):
        return f"{class_reference(kind, namespace)}.{value.name}"

    if kind in (list, tuple, set, frozenset, dict):
        if id(value) in active:
            raise UnrenderableValueError(value, "container refers to itself")
        active.add(id(value))
        try:
            return _render_container(value, namespace, active)
        finally:
            active.discard(id(value))

    return _checked_repr(value)


def _render_container(value: Any, namespace: Mapping[str, Any] | None, active: set[int]) -> str:
    kind = type(value)
    if kind is dict:
        items = ", ".join(
            f"{_render(k, namespace, active)}: {_render(v, namespace, active)}"
            for k, v in value.items()
        )
        return f"{{{items}}}"

    elements = [_render(item, namespace, active) for item in value]
    joined = ", ".join(elements)
    if kind is list:
        return f"[{joined}]"
    if kind is tuple:
        return f"({joined},)" if len(elements) == 1 else f"({joined})"
    if not elements:
        return f"{kind.__name__}()"
    if kind is set:
        return f"{{{joined}}}"
    return f"frozenset({{{joined}}})"


def _checked_repr(value: Any) -> str:
    try:
        text = repr(value)
    except Exception as e:
        raise UnrenderableValueError(value, f"repr() failed: {e}") from e
    if text.startswith("<"):
        raise UnrenderableValueError(value, f"default repr {text!r} is not source")
    if not is_expression(text):
        raise UnrenderableValueError(value, f"repr {text!r} does not parse as an expression")
    return text


def is_expression(text: str) -> bool:
    """True if ``text`` parses as a single Python expression."""
    try:
        ast.parse(text, mode="eval")
    except SyntaxError:
        return False
    return True


def _resolve(root: Any, dotted: str) -> Any:
    obj = root
    for part in dotted.split("."):
        obj = getattr(obj, part, None)
        if obj is None:
            return None
    return obj


def class_reference(cls: type, namespace: Mapping[str, Any] | None = None) -> str:
    """Spell a class as a dotted reference.

    Builtins are bare. Otherwise the shortest spelling that resolves to
    ``cls`` through ``namespace`` wins: the qualified name itself, then
    ``<module alias>.<qualified name>``. Falls back to the top-level package
    when it re-exports the class, else to the defining module's full name.

    Raises:
        UnrenderableValueError: For classes defined inside a function.

    """
    qualname = cls.__qualname__
    if "<locals>" in qualname:
        raise UnrenderableValueError(cls, "class defined inside a function has no importable name")
    if cls.__module__ == "builtins":
        return qualname

    if namespace is not None:
        head, _, rest = qualname.partition(".")
        bound = namespace.get(head)
        if bound is not None and (bound if not rest else _resolve(bound, rest)) is cls:
            return qualname

        spellings = sorted(
            (f"{name}.{qualname}" for name, obj in namespace.items()
             if isinstance(obj, types.ModuleType) and _resolve(obj, qualname) is cls),
            key=lambda spelling: (len(spelling), spelling),
        )
        if spellings:
            return spellings[0]

    package = cls.__module__.partition(".")[0]
    if _resolve(sys.modules.get(package), qualname) is cls:
        return f"{package}.{qualname}"
    return f"{cls.__module__}.{qualname}"

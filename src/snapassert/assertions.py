"""Marker functions: snapshot assertions that fill themselves in.

With one argument, a marker evaluates its expression, passes, and rewrites
its own call site in the calling file so the value becomes a second
argument. With two arguments it is an ordinary assertion.

    snap_assert(upper("hi"))              # first run: passes, file rewritten
    snap_assert(upper("hi"), "HI")        # later runs: upper("hi") == "HI"

    snap_assert_raise(lambda: 1 / 0)      # first run: passes, file rewritten
    snap_assert_raise(ZeroDivisionError, lambda: 1 / 0)

The current run's result always comes from the in-memory value. The
rewritten file only matters for the next run.

"""

import inspect
import sys
from collections.abc import Callable, Mapping
from typing import Any

from snapassert.config import SnapConfig, get_snap_config
from snapassert.coordinator import apply_patch_to_file
from snapassert.locator import marker_names
from snapassert.patch import ArgumentOrder
from snapassert.raises import Captured, NothingRaised, Raised, capture

_MISSING: Any = object()


def _call_site(stacklevel: int = 2) -> tuple[str, int, dict[str, Any]]:
    """Return (file, line, globals) of the frame ``stacklevel`` levels up."""
    frame = inspect.currentframe()
    try:
        for _ in range(stacklevel):
            assert frame is not None
            frame = frame.f_back
        assert frame is not None
        return frame.f_code.co_filename, frame.f_lineno, frame.f_globals
    finally:
        del frame


def _names(function: str, config: SnapConfig, namespace: Mapping[str, Any]) -> frozenset[str]:
    # Also accept whatever alias the caller bound the package to.
    package = sys.modules.get("snapassert")
    aliases = [name for name, obj in namespace.items() if package is not None and obj is package]
    return marker_names(function, (*config.namespaces, *aliases))


def _record(function: str, value: Any, order: ArgumentOrder) -> None:
    config = get_snap_config()
    path, line, namespace = _call_site(stacklevel=3)
    if not config.update:
        raise AssertionError(
            f"{path}:{line}: {function} has no expected value and source updates are disabled"
        )
    apply_patch_to_file(
        path,
        line,
        value,
        order,
        names=_names(function, config, namespace),
        namespace=namespace,
    )


def snap_assert(actual: Any, expected: Any = _MISSING) -> Any:
    """Assert ``actual == expected``, or record ``actual`` in the source.

    Args:
        actual: Value under test
        expected: Snapshot value. When omitted, the call site is rewritten
            to ``snap_assert(<expression>, <actual>)``.

    Returns:
        ``actual``

    Raises:
        AssertionError: The values differ, or ``expected`` is omitted while
            source updates are disabled.
        UnrenderableValueError: ``actual`` has no source form.

    """
    if expected is not _MISSING:
        if not actual == expected:
            raise AssertionError(f"snapshot mismatch: {actual!r} != {expected!r}")
        return actual

    _record("snap_assert", actual, ArgumentOrder.APPEND)
    return actual


def snap_assert_raise(expected: Any, fn: Callable[[], Any] = _MISSING) -> Captured:
    """Assert that ``fn`` raises exactly ``expected``, or record what it raises.

    Called as ``snap_assert_raise(fn)``, runs ``fn`` and rewrites the call
    site to ``snap_assert_raise(<exception class>, <fn>)``, or to
    ``snap_assert_raise(NothingRaised, <fn>)`` when ``fn`` returns normally.

    Called as ``snap_assert_raise(expected, fn)``, runs ``fn`` and checks
    that the exception class is exactly ``expected`` (subclasses do not
    match). ``NothingRaised`` expects a normal return.

    Returns:
        The captured outcome

    Raises:
        AssertionError: The outcome does not match ``expected``.

    """
    if fn is _MISSING:
        outcome = capture(expected)
        _record("snap_assert_raise", outcome.snapshot, ArgumentOrder.PREPEND)
        return outcome

    outcome = capture(fn)
    if outcome.snapshot is expected:
        return outcome

    wanted = getattr(expected, "__name__", repr(expected))
    match outcome:
        case Raised(exception=exc) if expected is NothingRaised:
            raise AssertionError(
                f"expected no exception, got {type(exc).__name__}: {exc}"
            ) from exc
        case Raised(exception=exc):
            raise AssertionError(
                f"expected {wanted}, got {type(exc).__name__}: {exc}"
            ) from exc
        case NothingRaised():
            raise AssertionError(f"expected {wanted} to be raised, but nothing was raised")

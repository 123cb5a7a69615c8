"""
snapassert — Snapshot assertions that write themselves into your tests

Write an assertion with only the expression under test. The first run passes
and rewrites that one call in the test file to carry the evaluated value;
every later run compares against it. Nothing else in the file changes.

Quick Start:
    >>> from snapassert import snap_assert, snap_assert_raise
    >>>
    >>> def test_upper():
    ...     snap_assert("hello".upper())
    ...     # after the first run the line reads:
    ...     # snap_assert("hello".upper(), 'HELLO')
    >>>
    >>> def test_division():
    ...     snap_assert_raise(lambda: 1 / 0)
    ...     # becomes: snap_assert_raise(ZeroDivisionError, lambda: 1 / 0)

Engine:
    >>> from snapassert import apply_patch_to_file, ArgumentOrder
    >>> apply_patch_to_file("tests/test_x.py", 5, "HI", ArgumentOrder.APPEND)
    <PatchOutcome.PATCHED: 'patched'>

    Pipeline: lock the file path, read, parse, locate the single-argument
    marker call on the line, render the patched call, splice it into the
    original text, write atomically, unlock.

Installation:
    pip install snapassert
"""

from snapassert.assertions import snap_assert, snap_assert_raise
from snapassert.config import (
    SnapConfig,
    get_snap_config,
    reset_snap_config,
    set_snap_config,
    snap_config_context,
)
from snapassert.coordinator import (
    EvaluationContext,
    PatchOutcome,
    apply_patch_to_file,
    path_lock,
)
from snapassert.errors import (
    LocatorMissError,
    LockTimeoutError,
    ParseError,
    PatchConflictError,
    SnapError,
    UnrenderableValueError,
)
from snapassert.locator import find_call, locate_calls, marker_names
from snapassert.location import SourceRange
from snapassert.nodes import Argument, Call, Module
from snapassert.parser import Parser, parse
from snapassert.patch import ArgumentOrder, Patch, apply_patches, build_patch
from snapassert.raises import NothingRaised, Raised, capture
from snapassert.render import render_value

__version__ = "0.1.0"

__all__ = [
    "Argument",
    "ArgumentOrder",
    "Call",
    "EvaluationContext",
    "LocatorMissError",
    "LockTimeoutError",
    "Module",
    "NothingRaised",
    "ParseError",
    "Parser",
    "Patch",
    "PatchConflictError",
    "PatchOutcome",
    "Raised",
    "SnapConfig",
    "SnapError",
    "SourceRange",
    "UnrenderableValueError",
    "__version__",
    "apply_patch_to_file",
    "apply_patches",
    "build_patch",
    "capture",
    "find_call",
    "get_snap_config",
    "locate_calls",
    "marker_names",
    "parse",
    "path_lock",
    "render_value",
    "reset_snap_config",
    "set_snap_config",
    "snap_assert",
    "snap_assert_raise",
    "snap_config_context",
]

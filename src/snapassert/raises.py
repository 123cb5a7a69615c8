"""Capture the outcome of a callable as a value.

``capture`` never uses exceptions to report "nothing was raised": it
returns either ``Raised`` or ``NothingRaised``. Each outcome has a
``snapshot`` class, the value ``snap_assert_raise`` embeds in the source:
the exception's class, or ``NothingRaised`` itself.

Only ``Exception`` subclasses are captured. ``KeyboardInterrupt``,
``SystemExit`` and other ``BaseException`` subclasses propagate.

"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Raised:
    """The callable raised ``exception``."""

    exception: Exception

    @property
    def exc_type(self) -> type[Exception]:
        return type(self.exception)

    @property
    def snapshot(self) -> type:
        return self.exc_type


@dataclass(frozen=True, slots=True)
class NothingRaised:
    """The callable returned ``result`` without raising.

    The class itself is the snapshot value: ``snap_assert_raise(NothingRaised,
    fn)`` asserts that ``fn`` returns normally.

    """

    result: Any = None

    @property
    def snapshot(self) -> type:
        return NothingRaised


type Captured = Raised | NothingRaised


def capture(fn: Callable[[], Any]) -> Captured:
    """Call ``fn`` with no arguments and return what happened.

    Example:
        >>> capture(lambda: 1 / 0).snapshot
        <class 'ZeroDivisionError'>
        >>> capture(lambda: 42)
        NothingRaised(result=42)

    """
    if not callable(fn):
        raise TypeError(f"expected a callable, got {type(fn).__name__}")
    try:
        result = fn()
    except Exception as e:
        return Raised(e)
    return NothingRaised(result)

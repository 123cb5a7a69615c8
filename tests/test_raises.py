"""Tests for snapassert.raises — outcomes as values."""

import pytest

from snapassert import NothingRaised, Raised, capture


class TestCapture:
    def test_raised(self) -> None:
        outcome = capture(lambda: 1 / 0)
        assert isinstance(outcome, Raised)
        assert outcome.exc_type is ZeroDivisionError
        assert outcome.snapshot is ZeroDivisionError

    def test_nothing_raised(self) -> None:
        outcome = capture(lambda: [1])
        assert outcome == NothingRaised([1])
        assert outcome.snapshot is NothingRaised

    def test_exception_instance_kept(self) -> None:
        error = KeyError("k")

        def fail() -> None:
            raise error

        outcome = capture(fail)
        assert isinstance(outcome, Raised)
        assert outcome.exception is error

    def test_exact_class_reported(self) -> None:
        outcome = capture(lambda: {}["missing"])
        assert outcome.snapshot is KeyError

    def test_base_exception_propagates(self) -> None:
        def leave() -> None:
            raise SystemExit(3)

        with pytest.raises(SystemExit):
            capture(leave)

    def test_not_callable(self) -> None:
        with pytest.raises(TypeError, match="expected a callable, got int"):
            capture(42)  # type: ignore[arg-type]

    def test_match_on_outcome(self) -> None:
        match capture(lambda: int("x")):
            case Raised(exception=ValueError()):
                pass
            case _:
                pytest.fail("expected Raised(ValueError)")

"""Find the marker call that triggered the current evaluation.

A marker call is recognized by its callee name, spelled bare
(``snap_assert``) or qualified by a namespace (``snapassert.snap_assert``).
Only the single-argument shape is a candidate: a call that already carries
its value has two arguments and never needs patching.

Known limitation: when two single-argument marker calls share one line, the
first in pre-order is matched. Column information is not used to
disambiguate.

Thread Safety:
    All functions are pure. Safe to call from any thread.

"""

from collections.abc import Iterable, Iterator

from snapassert.nodes import Call, Module
from snapassert.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_NAMESPACES: tuple[str, ...] = ("snapassert",)


def marker_names(function: str, namespaces: Iterable[str] = DEFAULT_NAMESPACES) -> frozenset[str]:
    """Return every accepted spelling of a marker function.

    Example:
        >>> sorted(marker_names("snap_assert", ["snapassert", "sa"]))
        ['sa.snap_assert', 'snap_assert', 'snapassert.snap_assert']

    """
    return frozenset({function, *(f"{ns}.{function}" for ns in namespaces)})


def locate_calls(module: Module, line: int, names: Iterable[str]) -> Iterator[Call]:
    """Lazily yield single-argument marker calls that start on ``line``.

    Args:
        module: Parsed source
        line: 1-based line where the call begins
        names: Accepted callee spellings (see ``marker_names``)

    """
    accepted = frozenset(names)
    for call in module.calls_on_line(line):
        if call.name in accepted and call.is_single_argument:
            yield call


def find_call(module: Module, line: int, names: Iterable[str]) -> Call | None:
    """Return the first candidate from ``locate_calls``, or None on a miss."""
    call = next(locate_calls(module, line, names), None)
    if call is None:
        where = f"{module.location.source_file}:{line}" if module.location.source_file else f"line {line}"
        logger.warning("No single-argument marker call at %s, nothing to patch", where)
    return call

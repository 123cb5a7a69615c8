"""Serialized read-parse-patch-write cycles on source files.

``apply_patch_to_file`` is the engine's entry point. Each call runs one
cycle under an exclusive lock keyed by the file's canonical path:

    Idle -> LockHeld -> Parsed -> Located -> Patched -> Written -> LockReleased
                                     \\-- not found ----------------------^

The file is read fresh inside the lock every time, so a cycle always sees
the most recent completed write to that path and concurrent patchers of one
file cannot lose each other's updates. Writes replace the whole file at
once (temporary file, fsync, ``os.replace``); an interrupted write leaves
the previous content in place.

Limitation: locks are per process. Separate processes patching the same
file are not serialized. The lock registry keeps one entry per file ever
patched and is never pruned; it is bounded by the number of source files.

Thread Safety:
    All public functions are safe to call from any thread.

"""

import contextlib
import os
import shutil
import tempfile
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from snapassert.config import get_snap_config
from snapassert.errors import LocatorMissError, LockTimeoutError
from snapassert.locator import find_call, marker_names
from snapassert.parser import decode_source, parse
from snapassert.patch import ArgumentOrder, apply_patches, build_patch
from snapassert.utils.logger import get_logger

logger = get_logger(__name__)

# Marker function embedding its value in each argument order.
MARKER_FUNCTIONS: dict[ArgumentOrder, str] = {
    ArgumentOrder.APPEND: "snap_assert",
    ArgumentOrder.PREPEND: "snap_assert_raise",
}

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


class PatchOutcome(Enum):
    """Result of one patch cycle, for diagnostics."""

    PATCHED = "patched"
    LOCATOR_MISS = "locator_miss"


def canonical_path(path: str | os.PathLike[str]) -> str:
    """Absolute path with symlinks resolved; the key for ``path_lock``."""
    return os.path.realpath(os.path.abspath(os.fspath(path)))


def _lock_for(key: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


@contextlib.contextmanager
def path_lock(path: str | os.PathLike[str], timeout: float | None = None) -> Iterator[str]:
    """Hold the exclusive lock for ``path`` for the duration of the block.

    Args:
        path: File path; any spelling of the same file maps to one lock
        timeout: Seconds to wait, or None to block until available

    Yields:
        The canonical path

    Raises:
        LockTimeoutError: If ``timeout`` elapses first.

    """
    key = canonical_path(path)
    lock = _lock_for(key)
    if timeout is None:
        lock.acquire()
    elif not lock.acquire(timeout=timeout):
        raise LockTimeoutError(key, timeout)
    logger.debug("Acquired lock on %s", key)
    try:
        yield key
    finally:
        lock.release()
        logger.debug("Released lock on %s", key)


def read_source(path: str | os.PathLike[str]) -> tuple[str, str]:
    """Read a source file as ``(text, encoding)`` with line endings intact."""
    return decode_source(Path(path).read_bytes(), os.fspath(path))


def write_source(path: str | os.PathLike[str], text: str, encoding: str = "utf-8") -> None:
    """Replace a file's content in one step, synced to stable storage.

    The original file's permission bits are kept. A missing file is
    created readable and writable by its owner only.

    """
    path = os.fspath(path)
    data = text.encode(encoding)
    directory, name = os.path.split(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory or ".")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        with contextlib.suppress(FileNotFoundError):
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise
    logger.debug("Wrote %d bytes to %s", len(data), path)


def apply_patch_to_file(
    path: str | os.PathLike[str],
    line: int,
    value: Any,
    order: ArgumentOrder = ArgumentOrder.APPEND,
    *,
    names: Iterable[str] | None = None,
    namespace: Mapping[str, Any] | None = None,
) -> PatchOutcome:
    """Embed ``value`` in the marker call starting on ``line`` of ``path``.

    Args:
        path: Source file to patch in place
        line: 1-based line where the marker call begins
        value: Already-evaluated value to embed
        order: Append the value after the existing argument, or prepend it
        names: Accepted callee spellings. Defaults to the marker function
            for ``order`` under the configured namespaces.
        namespace: Calling module's globals, for spelling class references

    Returns:
        PATCHED, or LOCATOR_MISS when no single-argument call is on the line

    Raises:
        ParseError: The file is not valid Python; nothing is written.
        UnrenderableValueError: ``value`` has no source form; nothing is written.
        LocatorMissError: No call found and the config is strict.
        LockTimeoutError: The configured lock timeout elapsed.
        OSError: Reading or writing the file failed.

    """
    config = get_snap_config()
    if names is None:
        names = marker_names(MARKER_FUNCTIONS[order], config.namespaces)

    with path_lock(path, config.lock_timeout) as key:
        source, encoding = read_source(key)
        module = parse(source, source_file=key)
        call = find_call(module, line, names)
        if call is None:
            if config.strict:
                raise LocatorMissError(line, key)
            return PatchOutcome.LOCATOR_MISS
        patch = build_patch(call, value, order, namespace=namespace)
        write_source(key, apply_patches(source, [patch]), encoding)
        logger.info("Patched %s", call.location)
    return PatchOutcome.PATCHED


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Where a marker call was evaluated and what it produced.

    Attributes:
        path: Source file of the call site
        line: Line where the call begins
        value: Evaluated value to embed
        namespace: Globals of the calling module (optional)

    """

    path: str
    line: int
    value: Any
    namespace: Mapping[str, Any] | None = None

    def apply(
        self,
        order: ArgumentOrder = ArgumentOrder.APPEND,
        names: Iterable[str] | None = None,
    ) -> PatchOutcome:
        """Run ``apply_patch_to_file`` for this call site."""
        return apply_patch_to_file(
            self.path,
            self.line,
            self.value,
            order,
            names=names,
            namespace=self.namespace,
        )

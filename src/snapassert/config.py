"""ContextVar-based configuration for snapassert.

Provides context-local configuration using Python's ContextVars (PEP 567).
Marker functions and the file coordinator read the active config on every
call, so a test can change behavior for its own context only.

Thread Safety:
    ContextVars are context-local by design. Each thread has independent
    storage, so no locks are needed.

Usage:
    # Refuse to rewrite files (e.g. in CI)
    from snapassert.config import SnapConfig, set_snap_config, reset_snap_config

    set_snap_config(SnapConfig(update=False))
    try:
        run_tests()
    finally:
        reset_snap_config()

    # Or use the context manager
    with snap_config_context(SnapConfig(strict=True)):
        snap_assert(compute())

"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SnapConfig:
    """Immutable snapassert configuration.

    Attributes:
        update: Rewrite source files for single-argument marker calls. When
            False, a single-argument call fails instead of writing.
        strict: Raise LocatorMissError when no call is found on the line,
            instead of logging a warning and moving on.
        lock_timeout: Seconds to wait for a file lock, or None to block.
        namespaces: Names that may qualify a marker call
            (``snapassert.snap_assert``).

    """

    update: bool = True
    strict: bool = False
    lock_timeout: float | None = None
    namespaces: tuple[str, ...] = ("snapassert",)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "SnapConfig":
        """Create SnapConfig from dictionary.

        Useful when settings come from an ini file or environment mapping.
        Only includes keys that are valid SnapConfig fields; unknown keys
        are silently ignored. A list of namespaces is converted to a tuple.

        Example:
            >>> config = SnapConfig.from_dict({"strict": True, "unknown_key": 1})
            >>> config.strict
            True

        """
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in config_dict.items() if k in valid_fields}
        if "namespaces" in filtered:
            filtered["namespaces"] = tuple(filtered["namespaces"])
        return cls(**filtered)


_DEFAULT_CONFIG: SnapConfig = SnapConfig()

_snap_config: ContextVar[SnapConfig] = ContextVar(
    "snap_config",
    default=_DEFAULT_CONFIG,
)


def get_snap_config() -> SnapConfig:
    """Get the configuration active in the current context."""
    return _snap_config.get()


def set_snap_config(config: SnapConfig) -> None:
    """Set configuration for the current context.

    Only affects the current thread's context. Other threads are unaffected.

    """
    _snap_config.set(config)


def reset_snap_config() -> None:
    """Reset to the default configuration."""
    _snap_config.set(_DEFAULT_CONFIG)


@contextmanager
def snap_config_context(config: SnapConfig) -> Iterator[None]:
    """Context manager for temporary config changes.

    Restores the previous config even if an exception is raised.

    """
    previous = _snap_config.get()
    _snap_config.set(config)
    try:
        yield
    finally:
        _snap_config.set(previous)


__all__ = [
    "SnapConfig",
    "get_snap_config",
    "reset_snap_config",
    "set_snap_config",
    "snap_config_context",
]

"""Minimal logging utilities for snapassert.

Provides a simple get_logger function that wraps the standard library logging.
The library never installs handlers; configure logging in the test session.

Example:
    >>> from snapassert.utils.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Patched %s", path)
"""

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given name.

    Returns a standard library logger with the "snapassert." prefix.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger instance

    Example:
        >>> logger = get_logger("mymodule")
        >>> logger.name
        'snapassert.mymodule'
    """
    if not (name == "snapassert" or name.startswith("snapassert.")):
        name = f"snapassert.{name}"
    return logging.getLogger(name)

"""Utility modules for snapassert.

Provides:
- logger: get_logger for logging
"""

from snapassert.utils.logger import get_logger

__all__ = [
    "get_logger",
]

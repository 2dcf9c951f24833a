"""Tool result caching with TTL support.

Provides caching to prevent repeated tool calls for identical invocations.
Cache keys are generated from tool name + hashed, key-sorted arguments.
"""

from .cache import (
    DEFAULT_SWEEP_INTERVAL,
    DEFAULT_TTL,
    CacheEntry,
    ReadWriteLock,
    ResultCache,
    make_key,
)

__all__ = [
    "CacheEntry",
    "ReadWriteLock",
    "ResultCache",
    "make_key",
    "DEFAULT_TTL",
    "DEFAULT_SWEEP_INTERVAL",
]

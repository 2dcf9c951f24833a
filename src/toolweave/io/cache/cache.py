"""Tool result caching with TTL support.

Memoizes successful tool outcomes so identical invocations inside the TTL
window skip the tool endpoint. Cache keys are generated from tool name +
hashed, key-sorted arguments.

Failed results are never stored: a failed call must always be retried.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from ..codec import canonical

if TYPE_CHECKING:
    from types import TracebackType

    from toolweave.foundation.errors import JsonMapping

DEFAULT_TTL: float = 300.0  # 5 minutes
DEFAULT_SWEEP_INTERVAL: float = 60.0

logger = logging.getLogger("toolweave.cache")


@dataclass(slots=True, frozen=True)
class CacheEntry:
    """A cached tool result. Returned to callers by value."""
    content: str
    is_error: bool
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred once waiting so a steady stream of readers
    cannot starve a sweep.

    Example:
        >>> lock = ReadWriteLock()
        >>> with lock.read():
        ...     pass
        >>> with lock.write():
        ...     pass
    """

    __slots__ = ("_cond", "_readers", "_writer", "_waiting_writers")

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    def read(self) -> _Guard:
        return _Guard(self.acquire_read, self.release_read)

    def write(self) -> _Guard:
        return _Guard(self.acquire_write, self.release_write)


class _Guard:
    __slots__ = ("_enter", "_exit")

    def __init__(self, enter: Callable[[], None], exit: Callable[[], None]) -> None:
        self._enter, self._exit = enter, exit

    def __enter__(self) -> None:
        self._enter()

    def __exit__(self, *_: object) -> None:
        self._exit()


def make_key(tool_name: str, arguments: JsonMapping | None) -> str:
    """Generate cache key from tool name and arguments.

    Argument maps that are equal as key/value sets produce the same key
    regardless of insertion order (keys are sorted at every nesting level).

    Example:
        >>> make_key("get_resource", {"name": "a", "ns": "b"}) == make_key("get_resource", {"ns": "b", "name": "a"})
        True
    """
    payload = tool_name.encode() + b":" + canonical(dict(arguments or {}))
    digest = hashlib.sha256(payload).hexdigest()[:16]
    return f"{tool_name}:{digest}"


class ResultCache:
    """Thread-safe in-memory cache of successful tool results with TTL expiry.

    Reads run concurrently under a reader/writer lock; set, sweep and
    invalidation are exclusive. `get` re-checks entry age itself, so
    correctness never depends on the background sweep, which only bounds
    memory.

    Args:
        ttl: Seconds an entry stays visible after it is stored
        sweep_interval: Seconds between background evictions (independent of ttl)
        auto_sweep: Start the sweeper thread on construction
        clock: Monotonic time source, injectable for tests

    Example:
        >>> cache = ResultCache(ttl=60, auto_sweep=False)
        >>> key = cache.make_key("list_blueprints", {})
        >>> cache.set(key, "[]")
        True
        >>> cache.get(key).content
        '[]'
    """

    __slots__ = ("_store", "_ttl", "_sweep_interval", "_lock", "_clock", "_stop", "_sweeper")

    make_key = staticmethod(make_key)

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        *,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        auto_sweep: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0 or sweep_interval <= 0:
            raise ValueError("ttl and sweep_interval must be positive")
        self._store: dict[str, CacheEntry] = {}
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._lock = ReadWriteLock()
        self._clock = clock
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None
        if auto_sweep:
            self.start()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry if present and not older than ttl, else None."""
        with self._lock.read():
            entry = self._store.get(key)
        if entry is None or entry.age(self._clock()) > self._ttl:
            return None
        return entry

    def set(self, key: str, content: str, is_error: bool = False) -> bool:
        """Store a successful result. Error results are refused.

        Returns:
            True if stored, False if refused because is_error was set
        """
        if is_error:
            logger.debug(f"[cache] refusing to store error result for {key}")
            return False
        entry = CacheEntry(content=content, is_error=False, created_at=self._clock())
        with self._lock.write():
            self._store[key] = entry
        return True

    def invalidate(self, key: str) -> bool:
        """Remove specific entry from cache."""
        with self._lock.write():
            return self._store.pop(key, None) is not None

    def invalidate_tool(self, tool_name: str) -> int:
        """Remove all entries for a tool. Returns count removed."""
        prefix = f"{tool_name}:"
        with self._lock.write():
            keys = [k for k in self._store if k.startswith(prefix)]
            for key in keys:
                del self._store[key]
        return len(keys)

    def clear(self) -> None:
        with self._lock.write():
            self._store.clear()

    def sweep(self) -> int:
        """Delete entries older than ttl. Returns count removed."""
        now = self._clock()
        with self._lock.write():
            expired = [k for k, v in self._store.items() if v.age(now) > self._ttl]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug(f"[cache] swept {len(expired)} expired entries")
        return len(expired)

    @property
    def size(self) -> int:
        with self._lock.read():
            return len(self._store)

    def stats(self) -> dict[str, float | int]:
        """Cache statistics for monitoring."""
        with self._lock.read():
            total = len(self._store)
        return {"total_entries": total, "ttl": self._ttl}

    # ─────────────────────────────────────────────────────────────────────────
    # Background sweep
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweeper thread (no-op if running)."""
        if self.sweeping:
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="toolweave-cache-sweep", daemon=True)
        self._sweeper.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        """Stop the sweeper thread."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("[cache] sweep failed")

    def __enter__(self) -> ResultCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

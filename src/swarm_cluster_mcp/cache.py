"""
Cache-aside storage for driver reads.

Keys follow ``cluster:<cluster_id>:<resource>``. A producer that raises leaves
the key untouched, so failures are never cached.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, TypeVar

from .config import logger

T = TypeVar("T")


class CacheStore(Protocol):
    """TTL key/value store with get-or-compute semantics."""

    def get_or_compute(self, key: str, ttl_seconds: int, producer: Callable[[], T]) -> T:
        ...

    def forget(self, key: str) -> None:
        ...


def cache_key(cluster_id: str, resource: str) -> str:
    return f"cluster:{cluster_id}:{resource}"


class TTLCache:
    """In-memory CacheStore shared by every driver in the process."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._entries: Dict[str, Tuple[Any, float]] = {}  # key -> (value, expires_at)
        self._lock = threading.Lock()

    def get_or_compute(self, key: str, ttl_seconds: int, producer: Callable[[], T]) -> T:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now < entry[1]:
                return entry[0]

        # Producer runs outside the lock; it blocks on remote round trips.
        value = producer()

        if ttl_seconds > 0:
            with self._lock:
                self._entries[key] = (value, self._clock() + ttl_seconds)
        return value

    def forget(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug(f"Cache entry invalidated: {key}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cache cleared")

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[1]


__all__ = [
    "CacheStore",
    "TTLCache",
    "cache_key",
]

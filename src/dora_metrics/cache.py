"""Process-wide TTL cache for computed metric values."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)


class MetricCache(Protocol):
    """Anything that can store a scalar with an expiry."""

    def get(self, key: Hashable) -> Optional[float]:
        ...

    def put(self, key: Hashable, value: float, ttl_seconds: float) -> None:
        ...


@dataclass(slots=True)
class CachedValue:
    value: float
    expires_at: float


class TTLCache:
    """In-memory cache whose entries disappear ``ttl_seconds`` after ``put``.

    Expired entries are evicted lazily on ``get``. Concurrent writers to the same
    key are not coordinated; the last ``put`` wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[Hashable, CachedValue] = {}

    def get(self, key: Hashable) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: Hashable, value: float, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("Cache 'ttl_seconds' must be greater than 0.")
        self._entries[key] = CachedValue(value=value, expires_at=self._clock() + ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FailSafeCache:
    """Wraps a cache backend so that backend failures behave like misses.

    A cache outage must never fail a metric computation, so any error raised by
    the backend is logged and swallowed here and nowhere else.
    """

    def __init__(self, backend: MetricCache) -> None:
        self._backend = backend

    def get(self, key: Hashable) -> Optional[float]:
        try:
            return self._backend.get(key)
        except Exception:  # noqa: BLE001
            logger.warning("Cache read failed; treating as miss", extra={"cache_key": str(key)}, exc_info=True)
            return None

    def put(self, key: Hashable, value: float, ttl_seconds: float) -> None:
        try:
            self._backend.put(key, value, ttl_seconds)
        except Exception:  # noqa: BLE001
            logger.warning("Cache write failed; value not cached", extra={"cache_key": str(key)}, exc_info=True)


# Shared by every MetricService that is not given its own cache.
default_cache = TTLCache()

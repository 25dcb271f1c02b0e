"""Thread-safe in-memory response cache with per-entry expiry."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass(slots=True)
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


def _escape(value: object) -> str:
    return str(value).replace("%", "%25").replace("_", "%5F")


def cache_key(prefix: str, *parts: object, **extras: object) -> str:
    """Build a deterministic cache key from request parameters.

    Positional parts are joined with underscores; keyword extras are appended
    as sorted name=value pairs, skipping None. Underscores and percent signs
    inside a value are percent-escaped, so distinct parameters never produce
    the same key. Callers pass every parameter that changes the upstream
    response.

        cache_key("market", "bitcoin,ethereum", "usd", 1, 10)
        -> "market_bitcoin,ethereum_usd_1_10"
    """
    key = "_".join([prefix, *(_escape(part) for part in parts)])
    for name in sorted(extras):
        value = extras[name]
        if value is not None:
            key += f"_{name}={_escape(value)}"
    return key


class ResponseCache:
    """Process-wide key → value store shielding the upstream API.

    An entry is visible only while `now - stored_at < ttl`; expired entries
    are dropped on the lookup that finds them, or by sweep(). When
    `max_entries` is reached, set() evicts the least recently set entry.
    `max_entries=0` disables the bound.
    """

    def __init__(
        self,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """Cached value for key, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds, replacing any previous entry."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)
            if self._max_entries:
                while len(self._entries) > self._max_entries:
                    self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.expired(self._clock())

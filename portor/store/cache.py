"""Bounded, time-expiring memoization of lookup results."""
import copy
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its absolute expiry time."""

    value: Any
    expires_at: float


class ResultCache:
    """LRU cache whose entries expire ``ttl_seconds`` after being stored."""

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    @staticmethod
    def make_key(**params: Any) -> str:
        """Canonical key: parameters sorted by name, None rendered empty."""
        return urlencode(sorted((name, "" if value is None else value) for name, value in params.items()))

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            logger.debug(f"[{self.name}] expired {key}")
            return None
        self._entries.move_to_end(key)
        # Callers get their own copy so the stored entry never changes
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any) -> None:
        """Store a fully built value, evicting the least recently used entry if full."""
        self._entries[key] = CacheEntry(value=copy.deepcopy(value), expires_at=self._clock() + self.ttl_seconds)
        self._entries.move_to_end(key)
        self._purge_expired()
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"[{self.name}] evicted {evicted}")

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

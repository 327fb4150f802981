#!/usr/bin/env python3
"""
Resource Cache Store
In-memory keyed store with TTL + LRU eviction and live statistics

Implements:
- get(key) → value | default
- set(key, value, ttl) → stored?
- invalidate(key), invalidate_prefix(prefix)
- clear(), purge_expired()
- stats() → StatsSnapshot {size, keys, hit_count, miss_count, ...}
"""

import logging
import sys
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .sizing import estimate_size

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_TTL = 300.0  # 5 minutes


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    expires_at: float
    size_hint: int

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of store statistics. Never aliases store internals."""

    size: int
    keys: List[str] = field(default_factory=list)
    hit_count: int = 0
    miss_count: int = 0
    eviction_count: int = 0
    total_bytes: int = 0
    capacity: int = DEFAULT_CAPACITY
    max_bytes: int = DEFAULT_MAX_BYTES

    @property
    def hit_rate_percent(self) -> float:
        total = self.hit_count + self.miss_count
        return round(self.hit_count / total * 100, 1) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "keys": list(self.keys),
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "eviction_count": self.eviction_count,
            "total_bytes": self.total_bytes,
            "capacity": self.capacity,
            "max_bytes": self.max_bytes,
            "hit_rate_percent": self.hit_rate_percent,
        }


class CacheStore:
    """
    Process-wide resource cache.

    Design principles:
    - Lazy expiration: no timers, expired entries go on the next touch
    - LRU order: the OrderedDict front is the least recently used entry
    - Bounded: entry count <= capacity, estimated bytes <= max_bytes
    - Fail-safe: normal operations never raise
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        max_bytes: int = DEFAULT_MAX_BYTES,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        sizer: Callable[[Any], int] = estimate_size,
        on_evict: Optional[Callable[[str, str], None]] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if max_bytes < 1:
            raise ValueError("max_bytes must be at least 1")

        self.capacity = capacity
        self.max_bytes = max_bytes
        self.default_ttl = default_ttl
        self._clock = clock
        self._sizer = sizer
        self._on_evict = on_evict

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._total_bytes = 0

        self._counters = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
            "writes": 0,
            "rejections": 0,
        }

        logger.info(f"CacheStore initialized (capacity={capacity}, max_bytes={max_bytes})")

    # ── Reads ──

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default on a miss."""
        entry = self._entries.get(key)

        if entry is None:
            self._counters["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return default

        if entry.is_expired(self._clock()):
            self._remove(key)
            self._counters["misses"] += 1
            self._counters["expirations"] += 1
            logger.debug(f"Cache miss (expired): {key}")
            self._notify([(key, "expired")])
            return default

        self._entries.move_to_end(key)
        self._counters["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return entry.value

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if not entry.is_expired(now))

    # ── Writes ──

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """
        Insert or overwrite key.

        Returns False when the entry was not stored (oversize or ttl <= 0).
        In that case any previous entry for key is dropped as well.
        """
        if ttl is None:
            ttl = self.default_ttl

        if ttl <= 0:
            self._remove(key)
            logger.debug(f"Skipping cache write for {key} (ttl={ttl})")
            return False

        size = self._size_of(value)
        if size > self.max_bytes:
            self._remove(key)
            self._counters["rejections"] += 1
            logger.warning(
                f"Rejected oversize cache entry {key} ({size} bytes > budget {self.max_bytes})"
            )
            return False

        # Overwrite never leaves two entries for one key
        self._remove(key)

        now = self._clock()
        evicted = self._make_room(size, now)

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + ttl,
            size_hint=size,
        )
        self._total_bytes += size
        self._counters["writes"] += 1

        logger.debug(f"Cached {key} (ttl={ttl}s, size={size})")
        self._notify(evicted)
        return True

    def invalidate(self, key: str) -> bool:
        """Remove key if present. Returns whether anything was removed."""
        removed = self._remove(key)
        if removed:
            logger.debug(f"Invalidated {key}")
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with prefix."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            self._remove(key)

        if doomed:
            logger.info(f"Invalidated {len(doomed)} cache entries with prefix {prefix!r}")
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries and reset counters."""
        cleared = len(self._entries)
        self._entries.clear()
        self._total_bytes = 0
        for name in self._counters:
            self._counters[name] = 0

        logger.info(f"Cache cleared ({cleared} entries)")

    def purge_expired(self) -> int:
        """Remove all expired entries. Never scheduled, callers decide when."""
        expired = self._sweep_expired(self._clock())
        if expired:
            logger.info(f"Purged {len(expired)} expired cache entries")
        self._notify(expired)
        return len(expired)

    # ── Stats ──

    def stats(self) -> StatsSnapshot:
        """Snapshot of live entries and counters. Does not touch recency."""
        now = self._clock()
        live = [key for key, entry in self._entries.items() if not entry.is_expired(now)]

        return StatsSnapshot(
            size=len(live),
            keys=live,
            hit_count=self._counters["hits"],
            miss_count=self._counters["misses"],
            eviction_count=self._counters["evictions"],
            total_bytes=self._total_bytes,
            capacity=self.capacity,
            max_bytes=self.max_bytes,
        )

    def counters(self) -> Dict[str, int]:
        return dict(self._counters)

    # ── Internals ──

    def _size_of(self, value: Any) -> int:
        try:
            return max(int(self._sizer(value)), 0)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Size estimation failed, using shallow size: {e}")
            return sys.getsizeof(value, 0)

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_bytes -= entry.size_hint
        return True

    def _sweep_expired(self, now: float) -> List[Tuple[str, str]]:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
        self._counters["expirations"] += len(expired)
        return [(key, "expired") for key in expired]

    def _needs_room(self, size: int) -> bool:
        return (
            len(self._entries) >= self.capacity
            or self._total_bytes + size > self.max_bytes
        )

    def _make_room(self, size: int, now: float) -> List[Tuple[str, str]]:
        """Evict expired entries first, then least recently used ones."""
        if not self._needs_room(size):
            return []

        evicted = self._sweep_expired(now)

        while self._entries and self._needs_room(size):
            reason = "capacity" if len(self._entries) >= self.capacity else "memory"
            key, entry = self._entries.popitem(last=False)
            self._total_bytes -= entry.size_hint
            self._counters["evictions"] += 1
            evicted.append((key, reason))
            logger.debug(f"Evicted {key} ({reason})")

        return evicted

    def _notify(self, evicted: List[Tuple[str, str]]) -> None:
        # Runs only once the store is consistent, so callbacks may re-enter it
        if not self._on_evict:
            return
        for key, reason in evicted:
            try:
                self._on_evict(key, reason)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Evict callback failed for {key}: {e}")

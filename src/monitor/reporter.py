#!/usr/bin/env python3
"""
Telemetry Reporter — live view of the resource cache

Samples CacheStore.stats() plus host memory/timing on a fixed interval,
but only while something is watching:

  start()  → polling task created, first sample taken immediately
  stop()   → task cancelled and awaited, handle released

Read-only with respect to the cache, except for the explicit
clear_cache() passthrough used by the monitor widget.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from cache.store import CacheStore

from .probes import MemoryProbe, default_memory_probe
from .snapshot import TelemetrySnapshot

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0


class TelemetryReporter:
    def __init__(
        self,
        store: CacheStore,
        probe: Optional[MemoryProbe] = None,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._store = store
        self._probe = probe or default_memory_probe()
        self._interval = interval
        self._clock = clock
        self._started_at = clock()
        self._sample_count = 0
        self._snapshot: Optional[TelemetrySnapshot] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Sampling ──

    def _sample_memory(self) -> Optional[int]:
        try:
            return self._probe.sample()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Memory probe %s failed: %s", self._probe.name, exc)
            return None

    def sample(self) -> TelemetrySnapshot:
        stats = self._store.stats()
        self._sample_count += 1
        self._snapshot = TelemetrySnapshot(
            cache_size=stats.size,
            cache_keys=list(stats.keys),
            hit_count=stats.hit_count,
            miss_count=stats.miss_count,
            hit_rate_percent=stats.hit_rate_percent,
            cache_bytes=stats.total_bytes,
            memory_bytes=self._sample_memory(),
            elapsed_ms=round((self._clock() - self._started_at) * 1000, 1),
            sample_count=self._sample_count,
        )
        return self._snapshot

    def snapshot(self) -> TelemetrySnapshot:
        """
        Latest polled snapshot while polling (at most one interval old).
        When not polling there is nothing to keep it current, so sample now.
        """
        if self._snapshot is None or not self.running:
            return self.sample()
        return self._snapshot

    def clear_cache(self) -> TelemetrySnapshot:
        self._store.clear()
        logger.info("Cache cleared from telemetry monitor")
        return self.sample()

    # ── Lifecycle ──

    def start(self) -> None:
        """Begin polling. Must be called from a running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.create_task(self._poll())
        logger.info("Telemetry polling started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        """Stop polling and release the task. Idempotent."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Telemetry polling stopped after %d samples", self._sample_count)

    async def _poll(self) -> None:
        while True:
            self.sample()
            await asyncio.sleep(self._interval)

    async def __aenter__(self) -> "TelemetryReporter":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

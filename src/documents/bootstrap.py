"""Wire the single cache store into the service and the reporter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from cache.key_generator import CacheKeyGenerator
from cache.store import CacheStore
from monitor.probes import MemoryProbe
from monitor.reporter import TelemetryReporter

from .config import CacheConfig
from .fetcher import ResourceFetcher, RestDocumentFetcher
from .service import ResourceService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: CacheStore
    resources: ResourceService
    telemetry: TelemetryReporter


def build_services(
    config: CacheConfig,
    fetcher: Optional[ResourceFetcher] = None,
    probe: Optional[MemoryProbe] = None,
) -> Services:
    """Construct the store once and hand the same instance to its users."""
    store = CacheStore(
        capacity=config.capacity,
        max_bytes=config.max_bytes,
        default_ttl=config.ttl.document_sec,
    )

    keys = CacheKeyGenerator()

    if fetcher is None:
        fetcher = RestDocumentFetcher(
            base_url=config.api.base_url,
            api_key=config.api.key or None,
            table=config.api.table,
            keys=keys,
        )

    resources = ResourceService(
        store,
        fetcher,
        keys=keys,
        ttls=config.ttl.as_map(),
        single_flight=config.single_flight,
        slow_operation_ms=config.telemetry.slow_operation_ms,
    )
    telemetry = TelemetryReporter(store, probe=probe, interval=config.telemetry.interval_sec)

    logger.debug("Services built (single_flight=%s)", config.single_flight)
    return Services(store=store, resources=resources, telemetry=telemetry)

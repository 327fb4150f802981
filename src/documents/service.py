#!/usr/bin/env python3
"""
Resource Service — Cached Document & Search Access

Sits between the UI layer and the fetch collaborator:

  request → canonical key → CacheStore hit?  → frozen cached result
                                      miss?  → fetch → freeze → cache → result

Write-through invalidation drops every key family a document change can
affect. Invalidation is best effort: a result can be stale for at most its
TTL if a change happens outside this process.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, Optional, TypeVar, Union

from cache.key_generator import CacheKeyGenerator
from cache.store import CacheStore
from monitor.timing import SLOW_OPERATION_MS, timed

from .fetcher import ResourceFetcher
from .queries import DocumentRequest, ListingRequest, ResourceRequest, SearchRequest
from .results import ResourceResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTLS: Dict[str, float] = {
    "document": 300.0,   # 5 minutes
    "search": 120.0,     # 2 minutes
    "listing": 300.0,    # 5 minutes
}

_MISS = object()


class InvalidationScope(Enum):
    ALL = ""
    DOCUMENTS = "doc:"
    SEARCH = "search:"
    LISTINGS = "list:"


class ResourceService:
    """
    Cached access to documents, searches and listings.

    - Single-flight: concurrent misses on one key share one fetch
    - Fetches run as tasks; a caller that goes away never cancels them,
      the result still lands in the cache for the next caller
    - A fetch that started before an invalidation is returned to its
      callers but never written to the cache
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: ResourceFetcher,
        keys: Optional[CacheKeyGenerator] = None,
        ttls: Optional[Dict[str, float]] = None,
        single_flight: bool = True,
        slow_operation_ms: float = SLOW_OPERATION_MS,
    ):
        self.store = store
        self.fetcher = fetcher
        self.keys = keys or CacheKeyGenerator()
        self.ttls = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)
        self.single_flight = single_flight
        self.slow_operation_ms = slow_operation_ms

        self._inflight: Dict[str, "asyncio.Task[ResourceResult]"] = {}
        self._generation = 0

    # ── Keys ──

    def key_for(self, request: ResourceRequest) -> str:
        if isinstance(request, DocumentRequest):
            return self.keys.document_key(request.document_id, request.facet)
        if isinstance(request, SearchRequest):
            if not request.query.strip():
                return self.keys.listing_key(
                    request.filters, request.sort, request.page, request.page_size
                )
            return self.keys.search_key(
                request.query, request.filters, request.sort, request.page, request.page_size
            )
        if isinstance(request, ListingRequest):
            return self.keys.listing_key(
                request.filters, request.sort, request.page, request.page_size
            )
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    def ttl_for(self, request: ResourceRequest) -> float:
        kind = request.kind
        if isinstance(request, SearchRequest) and not request.query.strip():
            kind = "listing"
        return self.ttls.get(kind, self.store.default_ttl)

    # ── Reads ──

    async def get(self, request: ResourceRequest, fresh: bool = False) -> ResourceResult:
        """
        Cached or freshly fetched result for request.

        fresh=True skips the cache lookup (for callers that need strict
        consistency) but still refreshes the cached copy.

        Fetch failures (FetchError from the fetcher) reach the caller
        unchanged; nothing is cached.
        """
        key = self.key_for(request)

        if not fresh:
            cached = self.store.get(key, _MISS)
            if cached is not _MISS:
                return cached

        task = self._inflight.get(key) if self.single_flight and not fresh else None
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(key, request, self._generation))
            task.add_done_callback(lambda done, key=key: self._fetch_done(key, done))
            if self.single_flight:
                self._inflight[key] = task
        else:
            logger.debug(f"Joining in-flight fetch for {key}")

        # shield: cancelling this caller must not cancel the shared fetch
        return await asyncio.shield(task)

    async def prefetch(self, requests: Iterable[ResourceRequest]) -> int:
        """Warm the cache for several requests. Failures are logged, never raised."""
        requests = list(requests)
        outcomes = await asyncio.gather(
            *(self.get(request) for request in requests), return_exceptions=True
        )

        warmed = 0
        for request, outcome in zip(requests, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Prefetch failed for {request!r}: {outcome}")
            else:
                warmed += 1
        return warmed

    async def _fetch_and_store(
        self, key: str, request: ResourceRequest, generation: int
    ) -> ResourceResult:
        with timed(f"fetch {key}", self.slow_operation_ms):
            try:
                result = await self.fetcher.fetch_resource(request)
            except Exception as exc:
                logger.debug(f"Fetch failed for {key}, nothing cached: {exc!r}")
                raise

        snapshot = result.frozen()

        if generation != self._generation:
            logger.info(f"Not caching {key}: invalidated while the fetch was in flight")
            return snapshot

        self.store.set(key, snapshot, self.ttl_for(request))
        return snapshot

    def _fetch_done(self, key: str, task: "asyncio.Task[ResourceResult]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the outcome so abandoned failures are not reported as unhandled
        if not task.cancelled():
            task.exception()

    # ── Invalidation ──

    def invalidate(self, scope: Union[InvalidationScope, ResourceRequest, str]) -> int:
        """
        Drop cached entries.

        scope is an InvalidationScope family, a request (exactly its key)
        or a raw key prefix. Returns the number of entries removed.
        """
        self._generation += 1

        if isinstance(scope, InvalidationScope):
            prefix = scope.value
        elif isinstance(scope, str):
            prefix = scope
        else:
            key = self.key_for(scope)
            self._inflight.pop(key, None)
            return 1 if self.store.invalidate(key) else 0

        for key in [k for k in self._inflight if k.startswith(prefix)]:
            del self._inflight[key]
        return self.store.invalidate_prefix(prefix)

    def invalidate_document(self, document_id: str, reason: str = "document_change") -> int:
        """Write-through invalidation for one changed document."""
        removed = 0
        for prefix in (
            self.keys.document_prefix(document_id),
            self.keys.search_prefix(),
            self.keys.listing_prefix(),
        ):
            removed += self.invalidate(prefix)

        logger.info(f"Invalidated {removed} cache entries for document {document_id} ({reason})")
        return removed

    async def apply_mutation(
        self,
        document_id: str,
        mutation: Callable[[], Awaitable[T]],
        reason: str = "update",
    ) -> T:
        """
        Run a mutation (upload, status change, deletion) and invalidate.

        Invalidation happens even when the mutation raises, since it may
        have partially applied.
        """
        try:
            return await mutation()
        finally:
            self.invalidate_document(document_id, reason)

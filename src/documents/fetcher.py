#!/usr/bin/env python3
"""
Document Fetchers — the uncached side of the resource service

Implements:
- ResourceFetcher: async fetch_resource(request) -> ResourceResult
- RestDocumentFetcher: PostgREST-style document table over HTTP

RestDocumentFetcher queries:
- document by id     → GET /rest/v1/<table>?id=eq.<id>
- search             → or=(title.ilike.*q*,abstract.ilike.*q*)
- listing            → equality / membership filters, order, limit/offset

Filters and sort come from the same canonical form as the cache keys.
"""

import asyncio
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from cache.key_generator import CacheKeyGenerator, normalize_text

from .errors import FetchError
from .queries import DocumentRequest, ResourceRequest, SearchRequest
from .results import ResourceResult

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"-?\d+(\.\d+)?(e[-+]?\d+)?")


class ResourceFetcher(ABC):
    """The excluded fetch/storage collaborator. Failures raise FetchError."""

    @abstractmethod
    async def fetch_resource(self, request: ResourceRequest) -> ResourceResult:
        ...


class RestDocumentFetcher(ResourceFetcher):
    """
    Fetch documents from a PostgREST endpoint (as exposed by Supabase).

    Blocking HTTP runs in a worker thread so the event loop never stalls.
    Auth: anon/service key from the constructor or DOCUMENTS_API_KEY.
    """

    DEFAULT_TIMEOUT = 10
    REST_PREFIX = "/rest/v1"
    SEARCH_COLUMNS = ("title", "abstract")

    def __init__(
        self,
        base_url: str,
        api_key: str = None,
        table: str = "documents",
        timeout: int = None,
        published_only: bool = True,
        keys: Optional[CacheKeyGenerator] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or os.environ.get("DOCUMENTS_API_KEY")
        self.table = table
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.published_only = published_only
        self.keys = keys or CacheKeyGenerator()

        if not self.api_key:
            logger.warning("No documents API key configured. Set DOCUMENTS_API_KEY env var.")

        self._request_count = 0
        self._error_count = 0

        logger.info(
            f"RestDocumentFetcher initialized ({self.base_url}, table={table}, "
            f"key={'configured' if self.api_key else 'missing'})"
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    # ── Query building ──
    #
    # Everything below reads the canonical filter/sort items the cache key
    # is built from, so requests sharing a key always send the same query.
    # Text values are lower-cased in that form, hence ilike for text.

    @staticmethod
    def _is_literal(value: str) -> bool:
        return value in ("true", "false") or bool(_NUMBER.fullmatch(value))

    @staticmethod
    def _like_literal(value: str) -> str:
        return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

    def _condition(self, value: str) -> str:
        if value in ("true", "false"):
            return f"is.{value}"
        if _NUMBER.fullmatch(value):
            return f"eq.{value}"
        return f"ilike.{self._like_literal(value)}"

    @staticmethod
    def _quote(value: str) -> str:
        # Reserved characters inside a logical tree need double quotes
        if any(ch in value for ch in ',.:()"\\'):
            return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        return value

    def _filter_params(self, filters: Mapping[str, Any]) -> Tuple[List[Tuple[str, str]], List[str]]:
        """Column params plus or-groups for text membership filters."""
        params = []
        groups = []
        items = self.keys.canonical_filter_items(filters)

        for name, value in items:
            if not isinstance(value, tuple):
                params.append((name, self._condition(value)))
            elif all(self._is_literal(member) for member in value):
                params.append((name, f"in.({','.join(value)})"))
            else:
                groups.append(",".join(
                    f"{name}.{op}.{self._quote(operand)}"
                    for op, operand in (self._condition(member).split(".", 1) for member in value)
                ))

        if self.published_only and "status" not in dict(items):
            params.append(("status", "eq.published"))
        return params, groups

    def _order_param(self, sort) -> Optional[str]:
        fields = self.keys.canonical_sort_items(sort)
        if not fields:
            return None
        return ",".join(f"{name}.{direction}" for name, direction in fields)

    def build_params(self, request: ResourceRequest) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = [("select", "*")]

        if isinstance(request, DocumentRequest):
            document_id = request.document_id
            if isinstance(document_id, str):
                document_id = document_id.strip()
            params.append(("id", f"eq.{document_id}"))
            return params

        column_params, groups = self._filter_params(request.filters)
        params.extend(column_params)

        if isinstance(request, SearchRequest) and request.query.strip():
            term = normalize_text(request.query).replace(",", " ")
            groups.append(",".join(f"{col}.ilike.*{term}*" for col in self.SEARCH_COLUMNS))

        if len(groups) == 1:
            params.append(("or", f"({groups[0]})"))
        elif groups:
            params.append(("and", "(" + ",".join(f"or({group})" for group in groups) + ")"))

        order = self._order_param(request.sort) or "created_at.desc"
        params.append(("order", order))
        # One extra row tells us whether another page exists
        params.append(("limit", str(request.page_size + 1)))
        params.append(("offset", str(request.offset)))
        return params

    # ── HTTP ──

    def _get(self, params: List[Tuple[str, str]]) -> Any:
        url = f"{self.base_url}{self.REST_PREFIX}/{self.table}"
        self._request_count += 1

        try:
            resp = requests.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            self._error_count += 1
            logger.error(f"Documents API request failed: {e}")
            raise FetchError(f"Documents API unreachable: {e}") from e

        if resp.status_code >= 400:
            self._error_count += 1
            logger.warning(f"Documents API error: GET {self.table} -> {resp.status_code} {resp.text[:300]}")
            raise FetchError(f"Documents API returned {resp.status_code}", status=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            self._error_count += 1
            raise FetchError(f"Documents API returned invalid JSON: {e}", status=resp.status_code) from e

    def fetch_sync(self, request: ResourceRequest) -> ResourceResult:
        rows = self._get(self.build_params(request))
        if not isinstance(rows, list):
            raise FetchError(f"Unexpected documents API payload: {type(rows).__name__}")

        if isinstance(request, DocumentRequest):
            if not rows:
                raise FetchError(f"Document {request.document_id} not found", status=404)
            return ResourceResult(kind=request.kind, data=rows[0])

        has_more = len(rows) > request.page_size
        page = rows[: request.page_size]
        return ResourceResult(
            kind=request.kind,
            data=page,
            has_more=has_more,
            # Approximate: exact counts need a separate count query
            total=request.offset + len(page) + (1 if has_more else 0),
        )

    async def fetch_resource(self, request: ResourceRequest) -> ResourceResult:
        return await asyncio.to_thread(self.fetch_sync, request)

    def get_stats(self) -> Dict[str, int]:
        return {"requests": self._request_count, "errors": self._error_count}

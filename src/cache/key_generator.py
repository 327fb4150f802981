#!/usr/bin/env python3
"""
Cache Key Generation — Canonical Request Keys

Implements:
- document_key(id, facet) → "doc:<id>:<facet>"
- search_key(query, filters, sort, page, page_size) → "search:<query>:<params>"
- listing_key(filters, sort, page, page_size) → "list:<params>"
- Prefix helpers for invalidating whole resource families
- Same logical request = identical key, whatever the parameter order
"""

import logging
import math
import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from .errors import InvalidKeyConstruction

logger = logging.getLogger(__name__)

DOCUMENT_FAMILY = "doc"
SEARCH_FAMILY = "search"
LISTING_FAMILY = "list"

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: str) -> str:
    """Strip, collapse internal whitespace, lower-case."""
    return _WHITESPACE.sub(" ", value.strip()).lower()


def _escape(text: str) -> str:
    # ':' '=' ',' '|' are separators in the key layout, '%' is the escape char
    return quote(text, safe="")


def _scalar_text(name: str, value: Any) -> str:
    """Canonical text of one filter value, before escaping."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidKeyConstruction(f"Non-finite number for {name!r}: {value}")
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return normalize_text(value)
    raise InvalidKeyConstruction(
        f"Unsupported value for {name!r}: {type(value).__name__}"
    )


def _scalar(name: str, value: Any) -> str:
    return _escape(_scalar_text(name, value))


FilterValue = Union[str, Tuple[str, ...]]


class CacheKeyGenerator:
    """
    Generate deterministic, human-readable cache keys.

    Design:
    - key = family + ":" + components joined by ":"
    - Every free-text component is percent-escaped, so no component can
      contain a separator and distinct requests never collide
    - Families share a prefix so whole families invalidate at once
    """

    def canonical_filter_items(
        self, filters: Optional[Mapping[str, Any]]
    ) -> List[Tuple[str, FilterValue]]:
        """
        Filters as sorted (name, value) pairs, unescaped.

        Anything a key folds together folds together here too, so a
        fetcher building its query from these pairs sends the same query
        for every request that shares a key:
        - None and blank strings are dropped
        - names and text values are normalized
        - membership values become a sorted tuple; one member is a scalar
        """
        if not filters:
            return []

        items = {}
        for raw_name, value in filters.items():
            if not isinstance(raw_name, str):
                raise InvalidKeyConstruction(f"Filter names must be strings, got {raw_name!r}")
            if value is None:
                continue

            if isinstance(value, (list, tuple, set, frozenset)):
                members = tuple(sorted(
                    {_scalar_text(raw_name, item) for item in value} - {""}
                ))
                canonical = members[0] if len(members) == 1 else members
            else:
                canonical = _scalar_text(raw_name, value)
                if canonical == "":
                    continue

            name = normalize_text(raw_name)
            if name in items:
                raise InvalidKeyConstruction(f"Duplicate filter name after normalization: {raw_name!r}")
            items[name] = canonical

        return sorted(items.items())

    def canonical_filters(self, filters: Optional[Mapping[str, Any]]) -> str:
        parts = []
        for name, value in self.canonical_filter_items(filters):
            if isinstance(value, tuple):
                text = "|".join(_escape(member) for member in value)
            else:
                text = _escape(value)
            parts.append(f"{_escape(name)}={text}")
        return ",".join(parts)

    def canonical_sort(self, sort: Optional[Iterable[Any]]) -> str:
        """Sort fields keep caller priority; each one normalized to field.dir."""
        return ",".join(
            f"{_escape(name)}.{direction}" for name, direction in self.canonical_sort_items(sort)
        )

    def canonical_sort_items(self, sort: Optional[Iterable[Any]]) -> List[Tuple[str, str]]:
        if not sort:
            return []
        if isinstance(sort, str):
            sort = [sort]

        fields = []
        for item in sort:
            if isinstance(item, str):
                name, direction = item, "asc"
                if item.startswith("-"):
                    name, direction = item[1:], "desc"
            elif isinstance(item, Sequence) and len(item) == 2:
                name, direction = item
            else:
                raise InvalidKeyConstruction(f"Unsupported sort spec: {item!r}")

            if not isinstance(name, str) or not isinstance(direction, str):
                raise InvalidKeyConstruction(f"Unsupported sort spec: {item!r}")

            direction = normalize_text(direction)
            if direction not in ("asc", "desc"):
                raise InvalidKeyConstruction(f"Unknown sort direction: {direction!r}")
            fields.append((normalize_text(name), direction))

        return fields

    def _params(self, filters, sort, page: int, page_size: int) -> str:
        for label, number in (("page", page), ("page_size", page_size)):
            if isinstance(number, bool) or not isinstance(number, int) or number < 1:
                raise InvalidKeyConstruction(f"{label} must be a positive int, got {number!r}")

        return (
            f"f={self.canonical_filters(filters)}"
            f":s={self.canonical_sort(sort)}"
            f":p={page}:n={page_size}"
        )

    # ── Documents ──

    def document_prefix(self, document_id: Any) -> str:
        # Ids are case sensitive, so they are not run through normalize_text
        if isinstance(document_id, str):
            if not document_id.strip():
                raise InvalidKeyConstruction("document_id must not be blank")
            token = _escape(document_id.strip())
        else:
            token = _scalar("document_id", document_id)
        return f"{DOCUMENT_FAMILY}:{token}:"

    def document_key(self, document_id: Any, facet: str = "meta") -> str:
        key = f"{self.document_prefix(document_id)}{_escape(normalize_text(facet))}"
        logger.debug(f"Generated key: {key}")
        return key

    # ── Search ──

    def search_prefix(self, query: Optional[str] = None) -> str:
        if query is None:
            return f"{SEARCH_FAMILY}:"
        return f"{SEARCH_FAMILY}:{_scalar('query', query)}:"

    def search_key(
        self,
        query: str,
        filters: Optional[Mapping[str, Any]] = None,
        sort: Optional[Iterable[Any]] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> str:
        if not isinstance(query, str):
            raise InvalidKeyConstruction(f"Search query must be a string, got {query!r}")

        key = f"{self.search_prefix(query)}{self._params(filters, sort, page, page_size)}"
        logger.debug(f"Generated key: {key}")
        return key

    # ── Listings ──

    def listing_prefix(self) -> str:
        return f"{LISTING_FAMILY}:"

    def listing_key(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        sort: Optional[Iterable[Any]] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> str:
        key = f"{self.listing_prefix()}{self._params(filters, sort, page, page_size)}"
        logger.debug(f"Generated key: {key}")
        return key

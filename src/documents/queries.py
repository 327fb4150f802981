"""Logical read requests understood by the resource service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union


@dataclass(frozen=True)
class DocumentRequest:
    document_id: str
    facet: str = "meta"

    @property
    def kind(self) -> str:
        return "document"


@dataclass(frozen=True)
class SearchRequest:
    """Full-text search over title/abstract, narrowed by equality filters."""

    query: str
    filters: Dict[str, Any] = field(default_factory=dict)
    sort: Tuple[Any, ...] = ()
    page: int = 1
    page_size: int = 20

    @property
    def kind(self) -> str:
        return "search"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class ListingRequest:
    """Browse documents page by page, with equality filters and no query."""

    filters: Dict[str, Any] = field(default_factory=dict)
    sort: Tuple[Any, ...] = ()
    page: int = 1
    page_size: int = 20

    @property
    def kind(self) -> str:
        return "listing"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


ResourceRequest = Union[DocumentRequest, SearchRequest, ListingRequest]

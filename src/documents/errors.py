"""Errors raised by the document access layer."""

from typing import Optional

from cache.errors import CacheError


class FetchError(CacheError):
    """The underlying fetch failed. Never cached, always propagated."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

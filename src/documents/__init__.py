"""
Document Access Layer
Cached document fetch, search and listings with write-through invalidation
"""

from .bootstrap import Services, build_services
from .config import CacheConfig, load_config
from .errors import FetchError
from .fetcher import ResourceFetcher, RestDocumentFetcher
from .queries import DocumentRequest, ListingRequest, SearchRequest
from .results import ResourceResult, freeze, thaw
from .service import InvalidationScope, ResourceService

__all__ = [
    'ResourceService', 'InvalidationScope',
    'DocumentRequest', 'SearchRequest', 'ListingRequest',
    'ResourceResult', 'freeze', 'thaw',
    'ResourceFetcher', 'RestDocumentFetcher', 'FetchError',
    'CacheConfig', 'load_config',
    'Services', 'build_services',
]

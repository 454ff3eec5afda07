"""
Service layer - resilient mirroring of the Advbox API.

Provides:
- UpstreamClient: Authenticated HTTP calls with 429 backoff
- Envelope normalization: One (items, total_count) shape for every payload
- PaginatedCrawler: Exhaustive page-by-page fetching with progress
- CacheStore: Timestamped last-good payload per resource key
- ProgressTracker: Crawl status for polling
- RequestDeduplicator: Single-flight joining of concurrent fetches
- StaleFallbackOrchestrator: Freshness policy and stale fallback
"""

from casesync.services.errors import (
    MalformedResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
    UnexpectedEnvelopeError,
    UpstreamError,
    is_transient_error,
)
from casesync.services.cache import CacheEntry, CacheStore
from casesync.services.client import UpstreamClient
from casesync.services.normalizer import NormalizedPage, decode_envelope, normalize
from casesync.services.progress import FetchProgress, ProgressTracker
from casesync.services.crawler import CrawlResult, PaginatedCrawler
from casesync.services.deduplicator import RequestDeduplicator
from casesync.services.orchestrator import (
    FetchMetadata,
    FetchResult,
    StaleFallbackOrchestrator,
)

__all__ = [
    # Errors
    "ServiceError",
    "UpstreamError",
    "RateLimitError",
    "MalformedResponseError",
    "RequestTimeoutError",
    "ServiceUnavailableError",
    "UnexpectedEnvelopeError",
    "is_transient_error",
    # Cache
    "CacheStore",
    "CacheEntry",
    # Client
    "UpstreamClient",
    # Normalizer
    "NormalizedPage",
    "decode_envelope",
    "normalize",
    # Progress
    "FetchProgress",
    "ProgressTracker",
    # Crawler
    "CrawlResult",
    "PaginatedCrawler",
    # Deduplicator
    "RequestDeduplicator",
    # Orchestrator
    "FetchMetadata",
    "FetchResult",
    "StaleFallbackOrchestrator",
]

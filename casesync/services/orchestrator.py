"""
StaleFallbackOrchestrator - Cache policy shared by every resource endpoint.

Availability over strict freshness: once a key has been fetched successfully,
callers keep getting data shaped like success even while the upstream is
rate limiting or failing.
"""

from datetime import timedelta
from typing import Any, Awaitable, Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from casesync.services.cache import CacheEntry, CacheStore
from casesync.services.deduplicator import RequestDeduplicator
from casesync.services.errors import is_transient_error
from casesync.services.normalizer import NormalizedPage, normalize
from casesync.services.progress import ProgressTracker

FetchFn = Callable[[], Awaitable[Any]]


class FetchMetadata(BaseModel):
    """How the payload was obtained."""

    model_config = ConfigDict(populate_by_name=True)

    from_cache: bool = Field(default=False, alias="fromCache")
    rate_limited: bool = Field(default=False, alias="rateLimited")
    cache_age: int = Field(default=0, alias="cacheAge")  # seconds


class FetchResult(BaseModel):
    """Normalized envelope returned by every resource operation."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[Any] = Field(default_factory=list, alias="data")
    total_count: int = Field(default=0, alias="totalCount")
    metadata: FetchMetadata = Field(default_factory=FetchMetadata)

    def to_response(self) -> dict[str, Any]:
        """Wire shape: ``{data, totalCount, metadata{fromCache, rateLimited, cacheAge}}``."""
        return self.model_dump(by_alias=True)


def _as_page(data: Any) -> NormalizedPage:
    if isinstance(data, NormalizedPage):
        return data
    to_page = getattr(data, "to_page", None)
    if callable(to_page):
        return to_page()
    return normalize(data)


class StaleFallbackOrchestrator:
    """
    Wraps a fetch function with cache-read / cache-write semantics.

    Usage:
        orchestrator = StaleFallbackOrchestrator(CacheStore(), ttl=timedelta(minutes=5))

        result = await orchestrator.fetch(
            "lawsuits-full",
            lambda: crawler.crawl("lawsuits-full", "/lawsuits"),
            force_refresh=False,
        )
    """

    def __init__(
        self,
        cache: CacheStore,
        ttl: timedelta = timedelta(minutes=5),
        progress: ProgressTracker | None = None,
        deduplicator: RequestDeduplicator | None = None,
    ):
        self.cache = cache
        self.ttl = ttl
        self.progress = progress or ProgressTracker()
        self._deduplicator = deduplicator or RequestDeduplicator()

    async def fetch(
        self,
        key: str,
        fetch_fn: FetchFn,
        force_refresh: bool = False,
    ) -> FetchResult:
        """
        Serve ``key`` from cache when fresh, otherwise refresh it.

        Args:
            key: Resource key
            fetch_fn: Zero-argument coroutine factory returning a payload
                (NormalizedPage, CrawlResult or raw decoded JSON)
            force_refresh: Skip the freshness check

        Returns:
            FetchResult with metadata describing where the data came from

        Raises:
            The fetch error, only when no cache entry exists and the error is
            non-transient.
        """
        if not force_refresh and await self.cache.is_fresh(key, self.ttl):
            entry = await self.cache.get(key)
            if entry is not None:
                logger.debug(f"Serving fresh cache for {key}")
                return self._from_entry(entry, rate_limited=False)

        try:
            data = await self._deduplicator.dedupe(key, fetch_fn)
        except Exception as e:
            return await self._fallback(key, e)

        page = _as_page(data)
        await self.cache.set(key, page, rate_limited=False)
        logger.info(f"Refreshed {key}: {len(page.items)} items")

        return FetchResult(
            items=page.items,
            total_count=page.total_count,
            metadata=FetchMetadata(from_cache=False, rate_limited=False, cache_age=0),
        )

    async def _fallback(self, key: str, error: Exception) -> FetchResult:
        transient = is_transient_error(error)
        entry = await self.cache.get(key)
        if entry is not None and transient:
            # stored_at is kept, so cacheAge keeps growing while the upstream is down
            entry = await self.cache.mark_rate_limited(key)

        if entry is not None:
            logger.warning(
                f"Fetch of {key} failed ({'transient' if transient else 'permanent'}), "
                f"returning cached data: {error}"
            )
            return self._from_entry(entry, rate_limited=transient)

        if transient:
            logger.warning(f"Fetch of {key} failed with no cache, returning empty: {error}")
            return FetchResult(
                items=[],
                total_count=0,
                metadata=FetchMetadata(from_cache=False, rate_limited=True, cache_age=0),
            )

        logger.error(f"Fetch of {key} failed with no cache: {error}")
        raise error

    def _from_entry(self, entry: CacheEntry[Any], rate_limited: bool) -> FetchResult:
        page = _as_page(entry.data)
        return FetchResult(
            items=page.items,
            total_count=page.total_count,
            metadata=FetchMetadata(
                from_cache=True,
                rate_limited=rate_limited,
                cache_age=int(self.cache.age(entry).total_seconds()),
            ),
        )

    async def status(self, key: str) -> dict[str, Any]:
        """Progress of the latest crawl for ``key`` plus cache age if cached."""
        progress = await self.progress.get(key)
        entry = await self.cache.get(key)
        status = progress.to_dict()
        status["cached"] = entry is not None
        status["rateLimited"] = entry.rate_limited if entry else False
        status["cacheAge"] = int(self.cache.age(entry).total_seconds()) if entry else None
        return status

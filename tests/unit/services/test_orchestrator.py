import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from casesync.services.cache import CacheStore
from casesync.services.crawler import CrawlResult
from casesync.services.errors import (
    MalformedResponseError,
    RateLimitError,
    UpstreamError,
)
from casesync.services.normalizer import NormalizedPage
from casesync.services.orchestrator import FetchResult, StaleFallbackOrchestrator
from tests.helpers import make_items

TTL = timedelta(minutes=5)


@pytest.fixture
def orchestrator(clock) -> StaleFallbackOrchestrator:
    return StaleFallbackOrchestrator(CacheStore(clock=clock), ttl=TTL)


def returning(page) -> AsyncMock:
    return AsyncMock(return_value=page)


def raising(error: Exception) -> AsyncMock:
    return AsyncMock(side_effect=error)


async def warm(orchestrator, key="lawsuits", items=None) -> FetchResult:
    items = items if items is not None else make_items(3)
    return await orchestrator.fetch(key, returning(NormalizedPage(items, len(items))))


class TestFreshness:
    @pytest.mark.asyncio
    async def test_cold_fetch_goes_to_network(self, orchestrator):
        fetch = returning(NormalizedPage(make_items(2), 2))

        result = await orchestrator.fetch("lawsuits", fetch)

        fetch.assert_awaited_once()
        assert result.items == make_items(2)
        assert result.total_count == 2
        assert result.metadata.from_cache is False
        assert result.metadata.rate_limited is False
        assert result.metadata.cache_age == 0

    @pytest.mark.asyncio
    async def test_fresh_entry_skips_network(self, orchestrator, clock):
        await warm(orchestrator)
        clock.advance(minutes=4)
        fetch = returning(NormalizedPage([], 0))

        result = await orchestrator.fetch("lawsuits", fetch)

        fetch.assert_not_awaited()
        assert result.items == make_items(3)
        assert result.metadata.from_cache is True
        assert result.metadata.rate_limited is False
        assert result.metadata.cache_age == 240

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed(self, orchestrator, clock):
        await warm(orchestrator)
        clock.advance(minutes=5)
        fetch = returning(NormalizedPage(make_items(5), 5))

        result = await orchestrator.fetch("lawsuits", fetch)

        fetch.assert_awaited_once()
        assert result.total_count == 5
        assert result.metadata.from_cache is False

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_fresh_entry(self, orchestrator):
        await warm(orchestrator)
        fetch = returning(NormalizedPage(make_items(4), 4))

        result = await orchestrator.fetch("lawsuits", fetch, force_refresh=True)

        fetch.assert_awaited_once()
        assert result.total_count == 4
        assert result.metadata.from_cache is False

    @pytest.mark.asyncio
    async def test_accepts_crawl_results_and_raw_payloads(self, orchestrator):
        crawl = CrawlResult(items=make_items(3), total_count=3, pages=1)
        assert (await orchestrator.fetch("a", returning(crawl))).total_count == 3

        raw = {"data": make_items(2), "totalCount": 9}
        assert (await orchestrator.fetch("b", returning(raw))).total_count == 9


class TestStaleFallback:
    @pytest.mark.parametrize(
        "error",
        [
            RateLimitError("advbox", attempts=6),
            UpstreamError(503, "Service Unavailable"),
            UpstreamError(502, "Bad Gateway"),
            MalformedResponseError("<html>"),
            RuntimeError("Advbox API error: 502 - bad gateway"),
        ],
    )
    @pytest.mark.asyncio
    async def test_transient_failure_serves_previous_payload(
        self, orchestrator, clock, error
    ):
        warmed = await warm(orchestrator, items=make_items(7))
        clock.advance(hours=3)

        result = await orchestrator.fetch("lawsuits", raising(error), force_refresh=True)

        assert result.items == warmed.items
        assert result.total_count == 7
        assert result.metadata.from_cache is True
        assert result.metadata.rate_limited is True
        assert result.metadata.cache_age == 3 * 3600

    @pytest.mark.asyncio
    async def test_transient_failure_flags_entry_until_next_success(self, orchestrator, clock):
        await warm(orchestrator)
        stored_at = (await orchestrator.cache.get("lawsuits")).stored_at
        clock.advance(minutes=10)

        await orchestrator.fetch(
            "lawsuits", raising(UpstreamError(503, "down")), force_refresh=True
        )

        flagged = await orchestrator.cache.get("lawsuits")
        assert flagged.rate_limited is True
        assert flagged.stored_at == stored_at
        assert (await orchestrator.status("lawsuits"))["rateLimited"] is True

        await warm(orchestrator)

        assert (await orchestrator.cache.get("lawsuits")).rate_limited is False
        assert (await orchestrator.status("lawsuits"))["rateLimited"] is False

    @pytest.mark.asyncio
    async def test_permanent_failure_does_not_flag_entry(self, orchestrator):
        await warm(orchestrator)

        await orchestrator.fetch(
            "lawsuits", raising(UpstreamError(401, "unauthorized")), force_refresh=True
        )

        assert (await orchestrator.cache.get("lawsuits")).rate_limited is False

    @pytest.mark.asyncio
    async def test_transient_failure_without_cache_returns_empty(self, orchestrator):
        result = await orchestrator.fetch(
            "customers", raising(UpstreamError(503, "down"))
        )

        assert result.items == []
        assert result.total_count == 0
        assert result.metadata.rate_limited is True
        assert result.metadata.from_cache is False

    @pytest.mark.asyncio
    async def test_permanent_failure_prefers_cache(self, orchestrator, clock):
        await warm(orchestrator, key="movements-9")
        clock.advance(minutes=30)

        result = await orchestrator.fetch(
            "movements-9", raising(UpstreamError(404, "not found")), force_refresh=True
        )

        assert result.total_count == 3
        assert result.metadata.from_cache is True
        assert result.metadata.rate_limited is False
        assert result.metadata.cache_age == 1800

    @pytest.mark.asyncio
    async def test_permanent_failure_without_cache_propagates(self, orchestrator):
        with pytest.raises(UpstreamError) as exc_info:
            await orchestrator.fetch("movements-9", raising(UpstreamError(401, "bad token")))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_failure_does_not_overwrite_cache(self, orchestrator, clock):
        await warm(orchestrator)
        clock.advance(minutes=10)
        await orchestrator.fetch("lawsuits", raising(UpstreamError(503, "x")))

        entry = await orchestrator.cache.get("lawsuits")
        assert orchestrator.cache.age(entry) == timedelta(minutes=10)


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_cold_requests_crawl_once(self, orchestrator):
        release = asyncio.Event()
        calls = 0

        async def crawl():
            nonlocal calls
            calls += 1
            await release.wait()
            return CrawlResult(items=make_items(10), total_count=10, pages=1)

        first = asyncio.create_task(orchestrator.fetch("lawsuits-full", crawl))
        second = asyncio.create_task(orchestrator.fetch("lawsuits-full", crawl))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second)

        assert calls == 1
        assert [r.total_count for r in results] == [10, 10]


class TestFetchResult:
    def test_wire_shape(self):
        result = FetchResult(
            items=[{"id": 1}],
            total_count=1,
            metadata={"from_cache": True, "rate_limited": True, "cache_age": 60},
        )

        assert result.to_response() == {
            "data": [{"id": 1}],
            "totalCount": 1,
            "metadata": {"fromCache": True, "rateLimited": True, "cacheAge": 60},
        }

    @pytest.mark.asyncio
    async def test_status_reports_cache_and_progress(self, orchestrator, clock):
        await warm(orchestrator, key="tasks")
        clock.advance(seconds=30)

        status = await orchestrator.status("tasks")

        assert status["cached"] is True
        assert status["cacheAge"] == 30
        assert status["in_progress"] is False

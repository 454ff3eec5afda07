from unittest.mock import AsyncMock, MagicMock

import pytest

from casesync.scheduler import CacheRefreshScheduler
from casesync.services.errors import UpstreamError
from casesync.services.orchestrator import FetchMetadata, FetchResult


def fresh() -> FetchResult:
    return FetchResult(items=[], total_count=0)


def stale() -> FetchResult:
    return FetchResult(
        items=[{"id": 1}],
        total_count=1,
        metadata=FetchMetadata(from_cache=True, rate_limited=True, cache_age=600),
    )


class TestCacheRefreshScheduler:
    @pytest.fixture
    def source(self) -> MagicMock:
        source = MagicMock()
        source.refresh = AsyncMock()
        return source

    @pytest.mark.asyncio
    async def test_refreshes_each_resource_with_pause(self, source, sleep):
        source.refresh.return_value = fresh()
        refresher = CacheRefreshScheduler(source, pause_seconds=1.0, sleep=sleep)

        results = await refresher.refresh_now()

        expected = [
            "lawsuits_full",
            "lawsuits",
            "movements_full",
            "customers",
            "tasks",
            "transactions",
        ]
        assert [c.args[0] for c in source.refresh.await_args_list] == expected
        assert results["success"] == expected
        assert results["errors"] == []
        assert sleep.calls == [1.0] * 5
        assert refresher.last_results is results

    @pytest.mark.asyncio
    async def test_failures_are_collected_not_raised(self, source, sleep):
        source.refresh.side_effect = [
            fresh(),
            UpstreamError(401, "invalid token"),
            stale(),
            fresh(),
        ]
        refresher = CacheRefreshScheduler(
            source,
            resources=["lawsuits", "customers", "tasks", "transactions"],
            pause_seconds=0,
            sleep=sleep,
        )

        results = await refresher.refresh_all()

        assert results["success"] == ["lawsuits", "transactions"]
        assert [e["endpoint"] for e in results["errors"]] == ["customers", "tasks"]
        assert "401" in results["errors"][0]["error"]

    @pytest.mark.asyncio
    async def test_scheduled_job_runs_refresh(self, source, sleep):
        source.refresh.return_value = fresh()
        refresher = CacheRefreshScheduler(source, resources=["tasks"], sleep=sleep)

        await refresher.refresh_job()

        source.refresh.assert_awaited_once_with("tasks")
        assert refresher.last_results["success"] == ["tasks"]

    @pytest.mark.asyncio
    async def test_start_and_stop(self, source):
        refresher = CacheRefreshScheduler(source)

        refresher.start()
        refresher.start()
        assert refresher.is_running() is True
        assert refresher.scheduler.get_job("advbox_cache_refresh") is not None

        refresher.stop()
        assert refresher.is_running() is False

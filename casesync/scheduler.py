"""
Scheduled cache refresh.

Force-refreshes the main Advbox resources on an interval so that dashboards
usually hit a warm cache. Resources are refreshed one at a time with a short
pause in between to stay clear of the upstream rate limit.
"""

import asyncio
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from casesync.datasource.advbox import REFRESHABLE_RESOURCES, AdvboxSource
from casesync.services.client import SleepFn
from casesync.settings import global_settings
from casesync.utils import safe_func_wrapper


class CacheRefreshScheduler:
    """Cache refresh job scheduler"""

    def __init__(
        self,
        source: AdvboxSource,
        resources: list[str] | None = None,
        pause_seconds: float | None = None,
        sleep: SleepFn | None = None,
    ):
        self.source = source
        self.resources = resources or list(REFRESHABLE_RESOURCES)
        self.pause_seconds = (
            pause_seconds
            if pause_seconds is not None
            else global_settings.cache_refresh_pause_seconds
        )
        self._sleep = sleep or asyncio.sleep
        self.scheduler = AsyncIOScheduler()
        self._is_running = False
        self.last_results: dict[str, Any] | None = None

    async def refresh_all(self) -> dict[str, Any]:
        """
        Refresh every configured resource.

        A resource counts as refreshed only when its data came from the
        upstream; a stale-fallback answer is reported as an error.
        """
        results: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "success": [],
            "errors": [],
        }

        for index, resource in enumerate(self.resources):
            if index > 0:
                await self._sleep(self.pause_seconds)

            logger.info(f"Refreshing cache: {resource}")
            try:
                result = await self.source.refresh(resource)
            except Exception as e:
                logger.error(f"Failed to refresh {resource}: {e}")
                results["errors"].append({"endpoint": resource, "error": str(e)})
                continue

            if result.metadata.from_cache or result.metadata.rate_limited:
                results["errors"].append(
                    {
                        "endpoint": resource,
                        "error": "upstream unavailable, serving cached data",
                    }
                )
            else:
                results["success"].append(resource)

        logger.info(
            f"Cache refresh finished: {len(results['success'])} ok, "
            f"{len(results['errors'])} failed"
        )
        self.last_results = results
        return results

    @safe_func_wrapper
    async def refresh_job(self) -> None:
        """Scheduled refresh job"""
        await self.refresh_all()

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Cache refresh scheduler is already running")
            return

        interval_minutes = global_settings.cache_refresh_interval_minutes

        self.scheduler.add_job(
            self.refresh_job,
            trigger="interval",
            minutes=interval_minutes,
            id="advbox_cache_refresh",
            name="Advbox cache refresh",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache refresh scheduler started: refreshing every {interval_minutes} minutes"
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if not self._is_running:
            logger.warning("Cache refresh scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache refresh scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    async def refresh_now(self) -> dict[str, Any]:
        """Run one refresh immediately (manual trigger)"""
        logger.info("Manual cache refresh triggered")
        return await self.refresh_all()

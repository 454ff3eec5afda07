"""
RequestDeduplicator - Single-flight joining of concurrent fetches.

When several callers refresh the same resource key at once (e.g. two users
opening the lawsuit dashboard on a cold cache), only one crawl runs and every
caller awaits its outcome.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class DeduplicatorStats:
    started: int = 0  # fetches that actually ran
    joined: int = 0  # callers that waited on someone else's fetch
    in_flight: int = 0

    @property
    def join_rate(self) -> float:
        callers = self.started + self.joined
        return self.joined / callers if callers else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "deduplicated": self.joined,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.join_rate:.2%}",
        }


class RequestDeduplicator:
    """
    One in-flight fetch per key.

    Usage:
        dedup = RequestDeduplicator()
        items = await dedup.dedupe("lawsuits-full", crawl_lawsuits)
    """

    def __init__(self, debug: bool = False):
        self._flights: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``request_fn`` unless a fetch for ``key`` is already running,
        in which case its result (or exception) is shared.
        """
        async with self._lock:
            flight = self._flights.get(key)
            if flight is None:
                self._stats.started += 1
                self._log(f"start {key}")
                flight = asyncio.create_task(self._run(key, request_fn))
                self._flights[key] = flight
            else:
                self._stats.joined += 1
                self._log(f"join {key}")

        # A cancelled waiter must not cancel the fetch the others share
        return await asyncio.shield(flight)

    async def _run(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await request_fn()
        finally:
            async with self._lock:
                self._flights.pop(key, None)
            self._log(f"done {key}")

    def get_in_flight_keys(self) -> list[str]:
        return list(self._flights)

    def get_stats(self) -> DeduplicatorStats:
        self._stats.in_flight = len(self._flights)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")

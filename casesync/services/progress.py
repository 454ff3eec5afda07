"""
ProgressTracker - Crawl status per resource key, polled by the dashboards.
"""

import asyncio
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Callable

from loguru import logger


@dataclass(frozen=True)
class FetchProgress:
    """Snapshot of one crawl."""

    in_progress: bool = False
    started_at: datetime | None = None
    progress_message: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        return data


class ProgressTracker:
    """
    Key to FetchProgress map.

    Entries are overwritten on every page; nothing here prevents two crawls
    of the same key from interleaving updates.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._entries: dict[str, FetchProgress] = {}
        self._clock = clock or datetime.now
        self._lock = asyncio.Lock()

    async def start(self, key: str, message: str = "Starting fetch...") -> None:
        async with self._lock:
            self._entries[key] = FetchProgress(
                in_progress=True,
                started_at=self._clock(),
                progress_message=message,
            )
        logger.debug(f"[Progress] {key}: {message}")

    async def update(self, key: str, message: str) -> None:
        async with self._lock:
            current = self._entries.get(key) or FetchProgress(
                in_progress=True, started_at=self._clock()
            )
            self._entries[key] = replace(current, progress_message=message)
        logger.debug(f"[Progress] {key}: {message}")

    async def finish(self, key: str, message: str | None = None) -> None:
        async with self._lock:
            current = self._entries.get(key) or FetchProgress()
            self._entries[key] = replace(
                current,
                in_progress=False,
                progress_message=message or current.progress_message,
                error=None,
            )

    async def fail(self, key: str, error: str) -> None:
        async with self._lock:
            current = self._entries.get(key) or FetchProgress()
            self._entries[key] = replace(current, in_progress=False, error=error)
        logger.warning(f"[Progress] {key} failed: {error}")

    async def get(self, key: str) -> FetchProgress:
        """Current status for ``key``; idle when no crawl has been seen."""
        async with self._lock:
            return self._entries.get(key, FetchProgress())

"""
PaginatedCrawler - Fetches every page of a paginated Advbox resource.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from casesync.services.client import SleepFn, UpstreamClient
from casesync.services.errors import UnexpectedEnvelopeError
from casesync.services.normalizer import (
    NormalizedPage,
    Unrecognized,
    decode_envelope,
    normalize_envelope,
    reported_total,
)
from casesync.services.progress import ProgressTracker


@dataclass
class CrawlResult:
    """All items of a resource plus crawl bookkeeping."""

    items: list[Any]
    total_count: int
    pages: int

    def to_page(self) -> NormalizedPage:
        return NormalizedPage(self.items, self.total_count)


class PaginatedCrawler:
    """
    Walks ``page=1, 2, ...`` until the result set is exhausted.

    A crawl stops on an empty page, a short page, once the accumulated count
    reaches the upstream-reported total, or when ``max_pages`` is exceeded.
    """

    def __init__(
        self,
        client: UpstreamClient,
        progress: ProgressTracker,
        page_size: int = 1000,
        inter_request_delay: float = 1.5,
        max_pages: int = 100,
        sleep: SleepFn | None = None,
    ):
        self.client = client
        self.progress = progress
        self.page_size = page_size
        self.inter_request_delay = inter_request_delay
        self.max_pages = max_pages
        self._sleep = sleep or asyncio.sleep

    async def crawl(
        self,
        key: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> CrawlResult:
        """
        Fetch all pages of ``endpoint``.

        Args:
            key: Resource key used for progress reporting
            endpoint: API path (e.g. "/lawsuits")
            params: Extra query parameters sent with every page

        Returns:
            CrawlResult with concatenated items, final total and page count

        Raises:
            Whatever the client raised; progress is marked failed first.
        """
        items: list[Any] = []
        total: int | None = None
        page = 1
        pages = 0

        await self.progress.start(key, f"Fetching {endpoint}...")

        try:
            while True:
                if page > self.max_pages:
                    logger.warning(
                        f"Crawl of {endpoint} hit the {self.max_pages}-page cap "
                        f"with {len(items)} items"
                    )
                    break

                if page > 1:
                    await self._sleep(self.inter_request_delay)

                query = {**(params or {}), "page": page, "limit": self.page_size}
                payload = await self.client.request(endpoint, params=query)
                pages += 1

                envelope = decode_envelope(payload)
                if isinstance(envelope, Unrecognized):
                    logger.warning(
                        f"[{key}] Unrecognized payload on page {page} of {endpoint}: "
                        f"{str(payload)[:100]}"
                    )
                    # A bad first page must not overwrite the cached crawl
                    if page == 1:
                        raise UnexpectedEnvelopeError(
                            str(payload), service_id=self.client.SERVICE_ID
                        )

                batch = normalize_envelope(envelope).items
                total = reported_total(envelope) or total

                items.extend(batch)

                if total:
                    message = f"{len(items)} of {total} items fetched (page {page})"
                else:
                    message = f"{len(items)} items fetched (page {page})"
                await self.progress.update(key, message)
                logger.info(f"[{key}] {message}")

                if not batch or len(batch) < self.page_size:
                    break
                if total is not None and len(items) >= total:
                    break

                page += 1

        except Exception as e:
            await self.progress.fail(key, str(e))
            raise

        final_total = total if total is not None and total >= len(items) else len(items)
        await self.progress.finish(
            key, f"Completed: {len(items)} items in {pages} pages"
        )
        logger.info(f"Fetched {len(items)} items from {endpoint} in {pages} pages")

        return CrawlResult(items=items, total_count=final_total, pages=pages)

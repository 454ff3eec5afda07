"""
Advbox case-management data source.

Every read operation goes through the stale-fallback orchestrator, either as
a single page request or as a full paginated crawl.

API base: https://app.advbox.com.br/api/v1 (bearer token)
"""

from datetime import datetime
from typing import Any, Callable

from loguru import logger

from casesync.datastore.settings_loader import RuntimeSettings
from casesync.exceptions import ValidationError
from casesync.services.cache import CacheStore
from casesync.services.client import SleepFn, UpstreamClient
from casesync.services.crawler import PaginatedCrawler
from casesync.services.deduplicator import RequestDeduplicator
from casesync.services.normalizer import normalize
from casesync.services.orchestrator import FetchResult, StaleFallbackOrchestrator
from casesync.services.progress import ProgressTracker
from casesync.settings import global_settings

# Operations refreshed by the scheduled job, in refresh order
REFRESHABLE_RESOURCES = [
    "lawsuits_full",
    "lawsuits",
    "movements_full",
    "customers",
    "tasks",
    "transactions",
]


class AdvboxSource:
    """
    Named resource operations over the Advbox API.

    Usage:
        source = build_advbox_source(runtime_settings)
        result = await source.lawsuits_full(force_refresh=True)
        result.to_response()
    """

    SERVICE_ID = "advbox"

    def __init__(
        self,
        client: UpstreamClient,
        orchestrator: StaleFallbackOrchestrator,
        crawler: PaginatedCrawler,
    ):
        self.client = client
        self.orchestrator = orchestrator
        self.crawler = crawler

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    def is_configured(self) -> bool:
        """The API rejects every call without a token."""
        return self.client.has_token

    async def _single(
        self,
        key: str,
        endpoint: str,
        force_refresh: bool,
        params: dict[str, Any] | None = None,
    ) -> FetchResult:
        async def fetch():
            return normalize(await self.client.request(endpoint, params=params))

        return await self.orchestrator.fetch(key, fetch, force_refresh=force_refresh)

    async def _crawl(self, key: str, endpoint: str, force_refresh: bool) -> FetchResult:
        async def fetch():
            return await self.crawler.crawl(key, endpoint)

        return await self.orchestrator.fetch(key, fetch, force_refresh=force_refresh)

    @staticmethod
    def _require_id(lawsuit_id: str | int | None) -> str:
        if lawsuit_id is None or str(lawsuit_id).strip() == "":
            raise ValidationError("lawsuit_id is required")
        return str(lawsuit_id).strip()

    # Lawsuits

    async def lawsuits_full(self, force_refresh: bool = False) -> FetchResult:
        """Every lawsuit, crawled across all pages."""
        return await self._crawl("lawsuits-full", "/lawsuits", force_refresh)

    async def lawsuits(self, force_refresh: bool = False) -> FetchResult:
        """First page of lawsuits, for dashboards that only need recent ones."""
        return await self._single(
            "lawsuits",
            "/lawsuits",
            force_refresh,
            params={"page": 1, "limit": self.crawler.page_size},
        )

    async def last_movements(self, force_refresh: bool = False) -> FetchResult:
        return await self._single("last-movements", "/last_movements", force_refresh)

    async def movements_full(self, force_refresh: bool = False) -> FetchResult:
        """Latest movements across all lawsuits, crawled across all pages."""
        return await self._crawl("movements-full", "/last_movements", force_refresh)

    async def movements(
        self, lawsuit_id: str | int | None, force_refresh: bool = False
    ) -> FetchResult:
        lawsuit_id = self._require_id(lawsuit_id)
        return await self._single(
            f"movements-{lawsuit_id}", f"/movements/{lawsuit_id}", force_refresh
        )

    async def publications(
        self, lawsuit_id: str | int | None, force_refresh: bool = False
    ) -> FetchResult:
        lawsuit_id = self._require_id(lawsuit_id)
        return await self._single(
            f"publications-{lawsuit_id}", f"/publications/{lawsuit_id}", force_refresh
        )

    # Customers

    async def customers(self, force_refresh: bool = False) -> FetchResult:
        return await self._crawl("customers", "/customers", force_refresh)

    async def customer_birthdays(self, force_refresh: bool = False) -> FetchResult:
        return await self._single(
            "customer-birthdays", "/customers/birthdays", force_refresh
        )

    # Tasks and transactions

    async def tasks(self, force_refresh: bool = False) -> FetchResult:
        return await self._crawl("tasks", "/posts", force_refresh)

    async def transactions(self, force_refresh: bool = False) -> FetchResult:
        return await self._crawl("transactions", "/transactions", force_refresh)

    async def task_types(self, force_refresh: bool = False) -> FetchResult:
        """Task types offered by the task creation form."""
        return await self._single("task-types", "/tasks", force_refresh)

    async def create_task(self, body: dict[str, Any]) -> Any:
        """Create a task (post). Writes are never cached."""
        if not body:
            raise ValidationError("task body is required")
        data = await self.client.request("/posts", method="POST", body=body)
        logger.info("Created Advbox task")
        return data

    async def refresh(self, resource: str) -> FetchResult:
        """Force-refresh one of the resources in REFRESHABLE_RESOURCES."""
        if resource not in REFRESHABLE_RESOURCES:
            raise ValidationError(f"Unknown resource: {resource}")
        operation = getattr(self, resource)
        return await operation(force_refresh=True)

    async def fetch_status(self, key: str) -> dict[str, Any]:
        """Crawl progress for polling dashboards."""
        return await self.orchestrator.status(key)

    async def close(self) -> None:
        await self.client.close()


def build_advbox_source(
    runtime: RuntimeSettings | None = None,
    client: UpstreamClient | None = None,
    sleep: SleepFn | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AdvboxSource:
    """Wire client, crawler, cache and orchestrator from settings."""
    runtime = runtime or RuntimeSettings.defaults()

    client = client or UpstreamClient(
        base_url=global_settings.advbox_api_base,
        token=global_settings.advbox_api_token,
        timeout=global_settings.advbox_request_timeout,
        max_retries=global_settings.advbox_max_retries,
        backoff_base=global_settings.advbox_backoff_base_seconds,
        sleep=sleep,
    )
    progress = ProgressTracker(clock=clock)
    crawler = PaginatedCrawler(
        client,
        progress,
        page_size=global_settings.crawl_page_size,
        inter_request_delay=runtime.inter_request_delay,
        max_pages=global_settings.crawl_max_pages,
        sleep=sleep,
    )
    orchestrator = StaleFallbackOrchestrator(
        CacheStore(clock=clock, debug=global_settings.debug),
        ttl=runtime.cache_ttl,
        progress=progress,
        deduplicator=RequestDeduplicator(debug=global_settings.debug),
    )

    if not client.has_token:
        logger.warning("ADVBOX_API_TOKEN is not set; upstream calls will be rejected")

    return AdvboxSource(client, orchestrator, crawler)

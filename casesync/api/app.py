"""FastAPI server exposing the cached Advbox resources."""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from casesync.datasource.advbox import AdvboxSource, build_advbox_source
from casesync.datastore.engine import close_db, init_db
from casesync.datastore.settings_loader import load_runtime_settings
from casesync.exceptions import NotFoundError, ValidationError
from casesync.scheduler import CacheRefreshScheduler
from casesync.services.errors import ServiceError
from casesync.services.orchestrator import FetchResult

PREFIX = "/advbox"


class AdvboxServer:
    """HTTP server for the Advbox mirror.

    Every cached resource is a GET route accepting ``force_refresh=true`` and
    returning ``{data, totalCount, metadata}``.
    """

    def __init__(
        self,
        source: AdvboxSource | None = None,
        start_scheduler: bool = False,
        refresher: CacheRefreshScheduler | None = None,
    ):
        self.source = source
        self.start_scheduler = start_scheduler
        self.refresher = refresher or (CacheRefreshScheduler(source) if source else None)
        self._owns_source = source is None
        self.app = FastAPI(title="casesync", lifespan=self.lifespan)

        # Register routes
        self._register_resource("lawsuits-full", "lawsuits_full")
        self._register_resource("lawsuits", "lawsuits")
        self._register_resource("last-movements", "last_movements")
        self._register_resource("movements-full", "movements_full")
        self._register_resource("customers", "customers")
        self._register_resource("customer-birthdays", "customer_birthdays")
        self._register_resource("tasks", "tasks")
        self._register_resource("task-types", "task_types")
        self._register_resource("transactions", "transactions")
        self.app.get(f"{PREFIX}/movements")(self.movements)
        self.app.get(f"{PREFIX}/publications")(self.publications)
        self.app.post(f"{PREFIX}/create-task")(self.create_task)
        self.app.get(f"{PREFIX}/fetch-status/{{key}}")(self.fetch_status)
        self.app.post(f"{PREFIX}/cache-refresh")(self.cache_refresh)
        self.app.get("/health")(self.health_check)
        self.app.api_route(
            f"{PREFIX}/{{path:path}}", methods=["GET", "POST"], include_in_schema=False
        )(self.not_found)

        self.app.add_exception_handler(ServiceError, self.handle_service_error)
        self.app.add_exception_handler(NotFoundError, self.handle_http_error)
        self.app.add_exception_handler(ValidationError, self.handle_http_error)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """Load settings once, wire the source, run the refresh job."""
        if self.source is None:
            await init_db()
            runtime = await load_runtime_settings()
            self.source = build_advbox_source(runtime)
            self.refresher = CacheRefreshScheduler(self.source)

        if self.start_scheduler and self.refresher:
            self.refresher.start()

        try:
            yield
        finally:
            if self.refresher and self.refresher.is_running():
                self.refresher.stop()
            if self._owns_source and self.source:
                await self.source.close()
                await close_db()

    def _register_resource(self, path: str, operation: str) -> None:
        async def handler(force_refresh: bool = False) -> dict[str, Any]:
            logger.debug(f"Advbox resource requested: {path} (force={force_refresh})")
            fetch: Callable[..., Awaitable[FetchResult]] = getattr(self.source, operation)
            result = await fetch(force_refresh=force_refresh)
            return result.to_response()

        handler.__name__ = operation
        self.app.get(f"{PREFIX}/{path}")(handler)

    async def movements(
        self, lawsuit_id: str | None = None, force_refresh: bool = False
    ) -> dict[str, Any]:
        result = await self.source.movements(lawsuit_id, force_refresh=force_refresh)
        return result.to_response()

    async def publications(
        self, lawsuit_id: str | None = None, force_refresh: bool = False
    ) -> dict[str, Any]:
        result = await self.source.publications(lawsuit_id, force_refresh=force_refresh)
        return result.to_response()

    async def create_task(self, request: Request) -> Any:
        try:
            body = await request.json()
        except ValueError as e:
            raise ValidationError("request body must be JSON") from e
        if not isinstance(body, dict):
            raise ValidationError("request body must be a JSON object")
        return await self.source.create_task(body)

    async def fetch_status(self, key: str) -> dict[str, Any]:
        return await self.source.fetch_status(key)

    async def cache_refresh(self) -> dict[str, Any]:
        results = await self.refresher.refresh_now()
        return {"message": "Advbox cache refresh finished", "results": results}

    async def health_check(self) -> dict[str, Any]:
        """Health check endpoint."""
        status: dict[str, Any] = {"status": "ok", "service": "casesync"}
        if self.source:
            status["configured"] = self.source.is_configured()
            status["cache"] = self.source.orchestrator.cache.get_stats().to_dict()
            status["client"] = self.source.client.stats.to_dict()
        return status

    async def not_found(self, path: str) -> JSONResponse:
        raise NotFoundError(f"Endpoint not found: {path}")

    async def handle_http_error(self, request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    async def handle_service_error(
        self, request: Request, exc: ServiceError
    ) -> JSONResponse:
        status_code = getattr(exc, "status_code", 500)
        if not 400 <= status_code < 500:
            status_code = 500
        logger.error(f"Error in advbox endpoint {request.url.path}: {exc}")
        return JSONResponse(status_code=status_code, content={"error": str(exc)})


def create_app(
    source: AdvboxSource | None = None,
    start_scheduler: bool = False,
    refresher: CacheRefreshScheduler | None = None,
) -> FastAPI:
    """Create FastAPI app for the Advbox mirror.

    Args:
        source: Pre-built source (tests); built from stored settings at startup otherwise
        start_scheduler: Run the periodic cache refresh job
        refresher: Pre-built refresh scheduler (tests)

    Returns:
        FastAPI app
    """
    server = AdvboxServer(source, start_scheduler=start_scheduler, refresher=refresher)
    return server.app

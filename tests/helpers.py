"""Test doubles shared across the suite."""

from datetime import datetime, timedelta

from httpx import Response

from casesync.datasource.advbox import AdvboxSource, build_advbox_source
from casesync.datastore.settings_loader import RuntimeSettings
from casesync.services.client import UpstreamClient

API_BASE = "https://advbox.test/api/v1"
API_HOST = "advbox.test"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 4, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


def make_items(count: int, start: int = 0) -> list[dict[str, object]]:
    return [{"id": i, "name": f"Processo {i}"} for i in range(start, start + count)]


def build_source(
    sleep, clock, cache_ttl: timedelta = timedelta(minutes=5), delay: float = 1.5
) -> AdvboxSource:
    """AdvboxSource wired against API_BASE with fake time."""
    client = UpstreamClient(API_BASE, "test-token", sleep=sleep)
    runtime = RuntimeSettings(cache_ttl=cache_ttl, inter_request_delay=delay)
    return build_advbox_source(runtime, client=client, sleep=sleep, clock=clock)


def paged_responder(pages: list[list[dict[str, object]]]):
    """respx side effect serving ``pages`` by the ``page`` query parameter."""

    def respond(request):
        page = int(request.url.params.get("page", "1"))
        items = pages[page - 1] if page <= len(pages) else []
        return Response(200, json=items)

    return respond

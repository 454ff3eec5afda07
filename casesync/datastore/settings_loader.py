"""
One-shot startup loader for the tunables kept in the advbox_settings table.
"""

from dataclasses import dataclass
from datetime import timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casesync.datastore.engine import get_session_factory
from casesync.datastore.repositories import AdvboxSettingsRepository
from casesync.settings import global_settings


@dataclass(frozen=True)
class RuntimeSettings:
    """Settings fixed for the lifetime of the process."""

    cache_ttl: timedelta
    inter_request_delay: float  # seconds
    source: str = "defaults"

    @classmethod
    def defaults(cls) -> "RuntimeSettings":
        return cls(
            cache_ttl=timedelta(minutes=global_settings.default_cache_ttl_minutes),
            inter_request_delay=global_settings.default_delay_between_requests_ms / 1000,
        )


async def load_runtime_settings(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> RuntimeSettings:
    """
    Read cache_ttl_minutes and delay_between_requests_ms once.

    Any failure (database not initialized, query error, no row, values that
    are not positive) falls back to the hardcoded defaults; it never raises.
    """
    defaults = RuntimeSettings.defaults()

    try:
        factory = session_factory or get_session_factory()
        async with factory() as session:
            row = await AdvboxSettingsRepository(session).get_current()
    except Exception as e:
        logger.warning(f"Could not load advbox settings, using defaults: {e}")
        return defaults

    if row is None:
        logger.info("No advbox settings stored, using defaults")
        return defaults

    ttl_minutes = row.cache_ttl_minutes
    delay_ms = row.delay_between_requests_ms
    if not ttl_minutes or ttl_minutes <= 0 or delay_ms is None or delay_ms < 0:
        logger.warning(
            f"Invalid advbox settings (ttl={ttl_minutes}, delay={delay_ms}), using defaults"
        )
        return defaults

    settings = RuntimeSettings(
        cache_ttl=timedelta(minutes=ttl_minutes),
        inter_request_delay=delay_ms / 1000,
        source="database",
    )
    logger.info(
        f"Loaded advbox settings: cache TTL {ttl_minutes}min, delay {delay_ms}ms"
    )
    return settings

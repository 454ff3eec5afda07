"""
Repository layer wrapping data access.
"""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casesync.datastore.models import AdvboxSettingsDB


class AdvboxSettingsRepository:
    """Advbox settings Repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_current(self) -> AdvboxSettingsDB | None:
        """Return the first settings row; the table is meant to hold exactly one."""
        result = await self.session.execute(
            select(AdvboxSettingsDB).order_by(AdvboxSettingsDB.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def save(
        self,
        cache_ttl_minutes: int,
        delay_between_requests_ms: int,
        updated_by: str | None = None,
    ) -> AdvboxSettingsDB:
        """Update the settings row, creating it when the table is empty."""
        current = await self.get_current()
        if current:
            current.cache_ttl_minutes = cache_ttl_minutes
            current.delay_between_requests_ms = delay_between_requests_ms
            current.updated_by = updated_by
            logger.debug("Updated advbox settings")
        else:
            current = AdvboxSettingsDB(
                cache_ttl_minutes=cache_ttl_minutes,
                delay_between_requests_ms=delay_between_requests_ms,
                updated_by=updated_by,
            )
            self.session.add(current)
            logger.debug("Created advbox settings")
        await self.session.flush()
        return current

"""
Database models.
SQLAlchemy 2.0 declarative mapping.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class AdvboxSettingsDB(Base):
    """Advbox integration tunables, edited from the admin screen."""

    __tablename__ = "advbox_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cache_ttl_minutes: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    delay_between_requests_ms: Mapped[int] = mapped_column(
        Integer, default=1500, nullable=False
    )
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<AdvboxSettings(ttl={self.cache_ttl_minutes}min, "
            f"delay={self.delay_between_requests_ms}ms)>"
        )

"""Cached reference data envelope, overwritten wholesale on each refresh."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.models.base import Base


class CachedDataEntry(Base):
    __tablename__ = "cached_data"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    cached_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    from_server: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

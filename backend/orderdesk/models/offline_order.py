"""Offline order record: one order not yet confirmed as fully processed."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.models.base import Base, CreatedAtMixin


class OfflineOrderRecord(CreatedAtMixin, Base):
    __tablename__ = "offline_orders"

    # Equals the order code (OFF-... when created offline)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order: Mapped[dict] = mapped_column(JSON, nullable=False)
    document_snapshot: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    email_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    email_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    email_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    synced_to_server: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

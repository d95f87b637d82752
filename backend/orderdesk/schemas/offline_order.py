"""Offline order records as seen by callers of the repository."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

from orderdesk.models.enums import OfflineOrderState


class OfflineOrder(BaseModel):
    id: str
    order: dict[str, Any]
    document_snapshot: bytes | None = Field(default=None, exclude=True, repr=False)
    created_at: datetime
    email_sent: bool = False
    email_sent_at: datetime | None = None
    email_error: str | None = None
    synced_to_server: bool = False
    synced_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("created_at", "email_sent_at", "synced_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # SQLite hands timestamps back without tzinfo
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def state(self) -> OfflineOrderState:
        if self.email_sent:
            return OfflineOrderState.COMPLETE
        if self.email_error:
            return OfflineOrderState.FAILED
        if self.synced_to_server:
            return OfflineOrderState.SYNCED_AWAITING_EMAIL
        return OfflineOrderState.PENDING

    @computed_field
    @property
    def failure_reason(self) -> str | None:
        return self.email_error if self.state == OfflineOrderState.FAILED else None

    @computed_field
    @property
    def has_document_snapshot(self) -> bool:
        return self.document_snapshot is not None

    @property
    def order_code(self) -> str:
        return self.order.get("orderCode") or self.id

    @property
    def notification_email(self) -> str | None:
        return self.order.get("responsableEmail") or self.order.get("clientEmail")

"""In-memory sync status objects and cached reference-data envelopes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class SyncResult(BaseModel):
    success: int = 0
    failed: int = 0


class OrderSyncStatus(BaseModel):
    syncing: bool = False
    pending_count: int = 0
    last_sync_result: SyncResult | None = None


class ReferenceSyncStatus(BaseModel):
    syncing: bool = False
    last_sync: datetime | None = None
    error: str | None = None


class CachedReferenceData(BaseModel):
    data: Any
    cached_at: datetime
    from_server: bool = True


class ConnectivityUpdate(BaseModel):
    online: bool

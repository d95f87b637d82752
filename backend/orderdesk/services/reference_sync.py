"""Reference-data cache and its background refresh.

Read-mostly collections (clients, suppliers, themes, commercials, the order
list and the lightweight prefill lists) are fetched concurrently and each
one is written to ``cached_data`` as a whole envelope. A failing collection
flags the pass as errored but never discards the collections that
succeeded. A 401 means "not logged in" and is not an error.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from orderdesk.core.events import Listeners
from orderdesk.core.exceptions import AuthenticationRequired, StorageUnavailable
from orderdesk.database import CACHED_DATA, LocalStore
from orderdesk.models.enums import LAST_SYNC_CACHE_KEY, ReferenceCollection
from orderdesk.schemas.sync import CachedReferenceData, ReferenceSyncStatus
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.order_client import OrderServerClient

logger = logging.getLogger(__name__)

PARTIAL_FAILURE_MESSAGE = "Some reference data could not be synchronized."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReferenceDataCache:
    """Typed access to the ``cached_data`` collection."""

    def __init__(self, store: LocalStore):
        self.store = store

    async def write(
        self, collection: ReferenceCollection, data: Any, from_server: bool = True
    ) -> CachedReferenceData:
        envelope = CachedReferenceData(data=data, cached_at=_now(), from_server=from_server)
        await self.store.put(
            CACHED_DATA,
            collection.cache_key,
            {
                "data": data,
                "cached_at": envelope.cached_at,
                "from_server": from_server,
            },
        )
        return envelope

    async def read(self, collection: ReferenceCollection) -> CachedReferenceData | None:
        row = await self.store.get(CACHED_DATA, collection.cache_key)
        if row is None:
            return None
        return CachedReferenceData(
            data=row["data"],
            cached_at=_aware(row["cached_at"]),
            from_server=row["from_server"],
        )

    async def get_last_sync(self) -> datetime | None:
        row = await self.store.get(CACHED_DATA, LAST_SYNC_CACHE_KEY)
        if row is None or not row["data"]:
            return None
        return _aware(datetime.fromisoformat(row["data"]))

    async def set_last_sync(self, when: datetime | None = None) -> datetime:
        when = when or _now()
        await self.store.put(
            CACHED_DATA,
            LAST_SYNC_CACHE_KEY,
            {"data": when.isoformat(), "cached_at": when, "from_server": False},
        )
        return when

    # The cached order list is also patched locally between refreshes

    async def _orders(self) -> list[dict]:
        cached = await self.read(ReferenceCollection.ORDERS)
        return list(cached.data) if cached and isinstance(cached.data, list) else []

    async def upsert_order(self, order: dict) -> None:
        orders = await self._orders()
        code = order.get("orderCode")
        for index, existing in enumerate(orders):
            if existing.get("orderCode") == code:
                orders[index] = order
                break
        else:
            orders.insert(0, order)
        await self.write(ReferenceCollection.ORDERS, orders, from_server=False)

    async def update_order(self, order_code: str, updates: dict) -> bool:
        orders = await self._orders()
        for index, existing in enumerate(orders):
            if existing.get("orderCode") == order_code:
                orders[index] = {**existing, **updates}
                await self.write(ReferenceCollection.ORDERS, orders, from_server=False)
                return True
        return False

    async def remove_order(self, order_code: str) -> None:
        orders = await self._orders()
        remaining = [o for o in orders if o.get("orderCode") != order_code]
        if len(remaining) != len(orders):
            await self.write(ReferenceCollection.ORDERS, remaining, from_server=False)

    async def clear(self) -> int:
        return await self.store.clear(CACHED_DATA)


class ReferenceDataSync:
    def __init__(
        self,
        cache: ReferenceDataCache,
        client: OrderServerClient,
        connectivity: ConnectivitySignal,
        page_size: int = 10000,
    ):
        self.cache = cache
        self.client = client
        self.connectivity = connectivity
        self.page_size = page_size
        self.status = ReferenceSyncStatus()
        self._listeners = Listeners("reference-sync-status")
        self._running = False
        self._background: set[asyncio.Task] = set()

    def on_status_change(
        self, callback: Callable[[ReferenceSyncStatus], None]
    ) -> Callable[[], None]:
        """Subscribe; the current status is delivered immediately."""
        unsubscribe = self._listeners.add(callback)
        callback(self.status)
        return unsubscribe

    def _set_status(self, **changes) -> None:
        self.status = self.status.model_copy(update=changes)
        self._listeners.emit(self.status)

    async def initialize(self) -> None:
        """Seed ``status.last_sync`` from the persisted timestamp."""
        try:
            last_sync = await self.cache.get_last_sync()
        except StorageUnavailable as exc:
            logger.warning("Could not read last reference sync time: %s", exc)
            last_sync = None
        self._set_status(last_sync=last_sync)

    async def _refresh(self, collection: ReferenceCollection) -> bool:
        """Fetch and cache one collection. False when the user is not logged in."""
        try:
            data = await self.client.fetch_collection(collection, self.page_size)
        except AuthenticationRequired:
            logger.debug("Not logged in; %s not refreshed", collection.value)
            return False
        await self.cache.write(collection, data)
        return True

    async def sync_all(self) -> bool:
        if self._running or not self.connectivity.is_online():
            return False

        self._running = True
        self._set_status(syncing=True, error=None)
        try:
            collections = list(ReferenceCollection)
            results = await asyncio.gather(
                *(self._refresh(c) for c in collections),
                return_exceptions=True,
            )
            failures = [
                (c, r) for c, r in zip(collections, results) if isinstance(r, BaseException)
            ]
            for collection, exc in failures:
                logger.warning("Reference data %s not synchronized: %s", collection.value, exc)

            last_sync = await self.cache.set_last_sync()
            error = PARTIAL_FAILURE_MESSAGE if failures else None
            self._set_status(syncing=False, last_sync=last_sync, error=error)
            logger.info(
                "Reference data sync finished: %d/%d collections failed",
                len(failures),
                len(collections),
            )
            return not failures
        except Exception as exc:
            logger.exception("Reference data sync failed")
            self._set_status(syncing=False, error=str(exc) or "Synchronization error")
            return False
        finally:
            self._running = False

    def start_auto_sync(self) -> Callable[[], None]:
        def on_connectivity(online: bool) -> None:
            if online:
                logger.info("Connection restored - refreshing reference data")
                task = asyncio.create_task(self.sync_all())
                self._background.add(task)
                task.add_done_callback(self._background.discard)

        unsubscribe = self.connectivity.on_change(on_connectivity)
        if self.connectivity.is_online():
            task = asyncio.create_task(self.sync_all())
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return unsubscribe

    async def wait_idle(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

"""Offline order repository: CRUD over the ``offline_orders`` collection.

The local store is the source of truth for offline orders. Only the
submission service and the sync engine write through this repository; the
presentation layer reads and subscribes to ``on_change``.

When the store refuses a new order, the order is *held* in memory instead.
Held orders show up in every read and keep their sync flags in memory until
``flush_held`` gets them into the store. They do not survive a process restart.

Errors from the store (``StorageUnavailable``) propagate unchanged; retrying
is the sync engine's job, on its own schedule.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from orderdesk.core.events import Listeners
from orderdesk.core.exceptions import OfflineOrderNotSynced, StorageUnavailable
from orderdesk.database import OFFLINE_ORDERS, LocalStore
from orderdesk.schemas.offline_order import OfflineOrder
from orderdesk.schemas.order import OrderPayload

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_record(
    order: OrderPayload | dict[str, Any], document_snapshot: bytes | None
) -> dict[str, Any]:
    payload = order.to_wire() if isinstance(order, OrderPayload) else dict(order)
    order_id = payload.get("orderCode")
    if not order_id:
        raise ValueError("Cannot stage an order without an orderCode.")
    return {
        "id": order_id,
        "order": payload,
        "document_snapshot": document_snapshot,
        "created_at": _now(),
        "email_sent": False,
        "email_sent_at": None,
        "email_error": None,
        "synced_to_server": False,
        "synced_at": None,
    }


class OfflineOrderRepository:
    def __init__(self, store: LocalStore):
        self.store = store
        self._listeners = Listeners("offline-orders-changed")
        self._held: dict[str, dict[str, Any]] = {}

    def on_change(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def _changed(self) -> None:
        self._listeners.emit()

    async def save(
        self, order: OrderPayload | dict[str, Any], document_snapshot: bytes | None = None
    ) -> OfflineOrder:
        """Stage an order, upserting by its code.

        Saving the same code twice overwrites the earlier record (and resets
        its sync flags) instead of creating a duplicate.
        """
        values = _new_record(order, document_snapshot)
        await self.store.put(OFFLINE_ORDERS, values["id"], values)
        self._held.pop(values["id"], None)
        logger.info("Offline order %s saved locally", values["id"])
        self._changed()
        return OfflineOrder.model_validate(values)

    # --- in-memory fallback ----------------------------------------------

    def hold(
        self, order: OrderPayload | dict[str, Any], document_snapshot: bytes | None = None
    ) -> OfflineOrder:
        """Keep an order the store refused until ``flush_held`` can write it."""
        values = _new_record(order, document_snapshot)
        self._held[values["id"]] = values
        logger.warning("Offline order %s held in memory only", values["id"])
        self._changed()
        return OfflineOrder.model_validate(values)

    def held(self, pending_only: bool = False) -> list[OfflineOrder]:
        return [
            OfflineOrder.model_validate(values)
            for values in self._held.values()
            if not (pending_only and values["email_sent"])
        ]

    async def flush_held(self) -> int:
        """Write held orders to the store, keeping their sync flags.

        Stops at the first storage failure; whatever was not written stays held.
        """
        flushed = 0
        for order_id, values in list(self._held.items()):
            try:
                await self.store.put(OFFLINE_ORDERS, order_id, values)
            except StorageUnavailable as exc:
                logger.warning(
                    "Local store still unavailable, %d orders held in memory: %s",
                    len(self._held),
                    exc,
                )
                break
            del self._held[order_id]
            flushed += 1
            logger.info("Held offline order %s saved locally", order_id)
        if flushed:
            self._changed()
        return flushed

    def _merge_held(
        self, stored: list[OfflineOrder], pending_only: bool = False
    ) -> list[OfflineOrder]:
        if not self._held:
            return stored
        merged = stored + self.held(pending_only)
        return sorted(merged, key=lambda o: o.created_at)

    # --- reads -------------------------------------------------------------

    async def get_all(self) -> list[OfflineOrder]:
        rows = await self.store.get_all(OFFLINE_ORDERS)
        return self._merge_held([OfflineOrder.model_validate(row) for row in rows])

    async def get_by_id(self, order_id: str) -> OfflineOrder | None:
        if order_id in self._held:
            return OfflineOrder.model_validate(self._held[order_id])
        row = await self.store.get(OFFLINE_ORDERS, order_id)
        return OfflineOrder.model_validate(row) if row is not None else None

    async def get_pending_email(self) -> list[OfflineOrder]:
        """Orders whose e-mails are not confirmed yet (includes unsynced ones)."""
        rows = await self.store.get_all(OFFLINE_ORDERS, where={"email_sent": False})
        return self._merge_held(
            [OfflineOrder.model_validate(row) for row in rows], pending_only=True
        )

    async def get_unsynced(self) -> list[OfflineOrder]:
        rows = await self.store.get_all(OFFLINE_ORDERS, where={"synced_to_server": False})
        unsynced = [OfflineOrder.model_validate(row) for row in rows]
        unsynced += [o for o in self.held() if not o.synced_to_server]
        return sorted(unsynced, key=lambda o: o.created_at)

    async def count_pending(self) -> int:
        stored = await self.store.count(OFFLINE_ORDERS, where={"email_sent": False})
        return stored + len(self.held(pending_only=True))

    # --- sync bookkeeping ----------------------------------------------------

    async def _update(self, order_id: str, changes: dict[str, Any]) -> bool:
        if order_id in self._held:
            self._held[order_id].update(changes)
            return True
        return await self.store.update(OFFLINE_ORDERS, order_id, changes) is not None

    async def mark_email_result(
        self, order_id: str, success: bool, error_message: str | None = None
    ) -> None:
        """Record an e-mail/sync attempt. Unknown ids are ignored."""
        updated = await self._update(
            order_id,
            {
                "email_sent": success,
                "email_sent_at": _now(),
                "email_error": None if success else (error_message or "E-mail not sent"),
            },
        )
        if not updated:
            logger.debug("mark_email_result: offline order %s not found", order_id)
            return
        self._changed()

    async def mark_synced(self, order_id: str) -> None:
        updated = await self._update(
            order_id, {"synced_to_server": True, "synced_at": _now()}
        )
        if not updated:
            logger.debug("mark_synced: offline order %s not found", order_id)
            return
        self._changed()

    # --- cleanup -------------------------------------------------------------

    async def delete(self, order_id: str) -> bool:
        """User cleanup. Only orders the server already has may be removed."""
        existing = await self.get_by_id(order_id)
        if existing is None:
            return False
        if not existing.synced_to_server:
            raise OfflineOrderNotSynced(order_id)
        if self._held.pop(order_id, None) is not None:
            deleted = True
        else:
            deleted = await self.store.delete(OFFLINE_ORDERS, order_id)
        if deleted:
            self._changed()
        return deleted

    async def clear_synced(self) -> int:
        synced_held = [k for k, v in self._held.items() if v["synced_to_server"]]
        for order_id in synced_held:
            del self._held[order_id]
        count = len(synced_held)
        count += await self.store.delete_where(OFFLINE_ORDERS, {"synced_to_server": True})
        if count:
            logger.info("Removed %d synced offline orders", count)
            self._changed()
        return count

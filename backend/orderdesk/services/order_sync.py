"""Background sync of offline orders to the order server.

One pass walks every order whose e-mails are not confirmed:

* not yet on the server  -> POST /orders/sync-offline (create + documents + e-mails)
* on the server already  -> POST /orders/send-emails (heals a pass interrupted
  between the sync and the e-mail bookkeeping)

Failures are recorded on the order and never abort the pass. Only one pass
runs at a time per process; a trigger arriving mid-pass shares that pass's
result instead of queueing another one.

Orders the local store refused are held in memory by the repository. Each
pass first tries to write them to the store, then syncs whatever is still
held along with the stored orders.

The engine depends only on the repository, the server client, the
connectivity signal and the notifier, so the same class runs inside the API
process and inside the background worker.
"""

import asyncio
import logging
from typing import Callable

from orderdesk.core.events import Listeners
from orderdesk.core.exceptions import OfflineOrderNotFound, StorageUnavailable
from orderdesk.schemas.offline_order import OfflineOrder
from orderdesk.schemas.sync import OrderSyncStatus, SyncResult
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.notifier import SyncNotifier
from orderdesk.services.offline_orders import OfflineOrderRepository
from orderdesk.services.order_client import OrderServerClient

logger = logging.getLogger(__name__)


class OrderSyncEngine:
    def __init__(
        self,
        repository: OfflineOrderRepository,
        client: OrderServerClient,
        connectivity: ConnectivitySignal,
        notifier: SyncNotifier | None = None,
    ):
        self.repository = repository
        self.client = client
        self.connectivity = connectivity
        self.notifier = notifier
        self.status = OrderSyncStatus()
        self._listeners = Listeners("order-sync-status")
        self._current: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    # --- status -----------------------------------------------------------

    def on_status_change(
        self, callback: Callable[[OrderSyncStatus], None]
    ) -> Callable[[], None]:
        return self._listeners.add(callback)

    def _set_status(self, **changes) -> None:
        self.status = self.status.model_copy(update=changes)
        self._listeners.emit(self.status)

    @property
    def syncing(self) -> bool:
        return self._current is not None and not self._current.done()

    async def refresh_pending_count(self) -> int:
        try:
            pending = await self.repository.count_pending()
        except StorageUnavailable as exc:
            logger.warning("Pending order count unavailable: %s", exc)
            return self.status.pending_count
        self._set_status(pending_count=pending)
        return pending

    # --- triggers ---------------------------------------------------------

    async def trigger_sync(self) -> SyncResult:
        """Run a pass, or join the one already in flight."""
        if self.syncing:
            logger.debug("Sync pass already running; joining it")
            return await asyncio.shield(self._current)

        if not self.connectivity.is_online():
            logger.debug("Offline; sync pass skipped")
            return SyncResult()

        task = asyncio.create_task(self._run_pass(), name="order-sync-pass")
        self._current = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._current is task and task.done():
                self._current = None

    def start_auto_sync(self) -> Callable[[], None]:
        """Sync on every transition to online, and now if already online."""

        def on_connectivity(online: bool) -> None:
            if online:
                logger.info("Connection restored - syncing offline orders")
                self._spawn(self.trigger_sync())

        unsubscribe = self.connectivity.on_change(on_connectivity)
        if self.connectivity.is_online():
            self._spawn(self.trigger_sync())
        return unsubscribe

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for the running pass and any pending background work."""
        pending = list(self._background)
        if self._current is not None:
            pending.append(self._current)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # --- pass -------------------------------------------------------------

    async def _run_pass(self) -> SyncResult:
        self._set_status(syncing=True)
        await self.repository.flush_held()
        try:
            pending = await self.repository.get_pending_email()
        except StorageUnavailable as exc:
            pending = self.repository.held(pending_only=True)
            if not pending:
                logger.error("Sync pass aborted, local store unavailable: %s", exc)
                self._set_status(syncing=False)
                return SyncResult()
            logger.error(
                "Local store unavailable, syncing %d in-memory orders only: %s",
                len(pending),
                exc,
            )

        self._set_status(pending_count=len(pending))
        logger.info("Sync pass started: %d pending orders", len(pending))

        success = 0
        failed = 0
        for offline_order in pending:
            if await self._sync_one(offline_order):
                success += 1
            else:
                failed += 1

        try:
            remaining = await self.repository.count_pending()
        except StorageUnavailable:
            remaining = failed

        result = SyncResult(success=success, failed=failed)
        self._set_status(syncing=False, pending_count=remaining, last_sync_result=result)
        logger.info(
            "Sync pass finished: %d synced, %d failed, %d still pending",
            success,
            failed,
            remaining,
        )

        if success > 0:
            self._notify_synced(success)
        return result

    async def _sync_one(self, offline_order: OfflineOrder) -> bool:
        """Process one order. Returns True when its e-mails are confirmed."""
        order_id = offline_order.id
        try:
            if not offline_order.synced_to_server:
                response = await self.client.sync_offline_order(offline_order.order)
                await self.repository.mark_synced(order_id)
                await self.repository.mark_email_result(
                    order_id, response.emails_sent, response.email_error
                )
                if not response.emails_sent:
                    logger.warning(
                        "Order %s synced but e-mails failed: %s",
                        order_id,
                        response.email_error,
                    )
                return response.emails_sent

            await self.client.send_order_emails(
                offline_order.order_code, offline_order.notification_email
            )
            await self.repository.mark_email_result(order_id, True)
            return True
        except Exception as exc:
            logger.warning("Failed to sync offline order %s: %s", order_id, exc)
            await self._record_failure(order_id, exc)
            return False

    async def _record_failure(self, order_id: str, exc: Exception) -> None:
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        try:
            await self.repository.mark_email_result(order_id, False, message)
        except StorageUnavailable:
            logger.exception("Could not record sync failure for %s", order_id)

    def _notify_synced(self, count: int) -> None:
        if self.notifier is None:
            return
        plural = "s" if count > 1 else ""
        coro = self.notifier.notify(
            "Orders synced",
            f"{count} offline order{plural} sent to the server.",
        )
        task = self._spawn(coro)
        task.add_done_callback(_log_notification_failure)

    # --- manual actions ---------------------------------------------------

    async def resend_email(self, order_id: str) -> bool:
        """User-triggered resend for an order the server already has.

        Orders not yet on the server go through a full sync pass instead. A
        pass already in flight is joined first, so the order is not e-mailed
        twice when that pass picks it up.
        """
        offline_order = await self.repository.get_by_id(order_id)
        if offline_order is None:
            raise OfflineOrderNotFound(order_id)
        if self.syncing or not offline_order.synced_to_server:
            await self.trigger_sync()
            offline_order = await self.repository.get_by_id(order_id)
            if offline_order is None:
                raise OfflineOrderNotFound(order_id)
            if offline_order.email_sent or not offline_order.synced_to_server:
                return offline_order.email_sent

        ok = await self._sync_one(offline_order)
        await self.refresh_pending_count()
        return ok


def _log_notification_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Sync notification failed: %s", exc)

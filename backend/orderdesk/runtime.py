"""Assembly of the offline subsystem for a foreground or background process."""

import logging
from typing import Callable

import httpx

from orderdesk.config import Settings
from orderdesk.core.exceptions import StorageUnavailable
from orderdesk.database import LocalStore
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.documents import OrderDocumentRenderer
from orderdesk.services.notifier import SyncNotifier
from orderdesk.services.offline_orders import OfflineOrderRepository
from orderdesk.services.order_client import OrderServerClient
from orderdesk.services.order_sync import OrderSyncEngine
from orderdesk.services.reference_sync import ReferenceDataCache, ReferenceDataSync
from orderdesk.services.submission import DocumentRenderer, OrderSubmissionService

logger = logging.getLogger(__name__)


class OfflineRuntime:
    """Owns one instance of every collaborator and their listener wiring."""

    def __init__(
        self,
        store: LocalStore,
        connectivity: ConnectivitySignal,
        client: OrderServerClient,
        renderer: DocumentRenderer | None = None,
        notifier: SyncNotifier | None = None,
        code_prefix: str = "OFF-",
        render_timeout: float = 10,
        reference_page_size: int = 10000,
    ):
        self.store = store
        self.connectivity = connectivity
        self.client = client
        self.notifier = notifier or SyncNotifier()
        self.repository = OfflineOrderRepository(store)
        self.submission = OrderSubmissionService(
            connectivity,
            client,
            self.repository,
            renderer=renderer,
            code_prefix=code_prefix,
            render_timeout=render_timeout,
        )
        self.order_sync = OrderSyncEngine(
            self.repository, client, connectivity, self.notifier
        )
        self.reference_cache = ReferenceDataCache(store)
        self.reference_sync = ReferenceDataSync(
            self.reference_cache, client, connectivity, page_size=reference_page_size
        )
        self._unsubscribers: list[Callable[[], None]] = []

    @classmethod
    def build(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        initial_online: bool = True,
    ) -> "OfflineRuntime":
        return cls(
            store=LocalStore(settings.LOCAL_DB_URL),
            connectivity=ConnectivitySignal(
                initial=initial_online,
                probe_url=settings.CONNECTIVITY_PROBE_URL or None,
                probe_interval=settings.CONNECTIVITY_PROBE_INTERVAL_SECONDS,
                timeout=settings.REQUEST_TIMEOUT_SECONDS,
                transport=transport,
            ),
            client=OrderServerClient(
                settings.SERVER_BASE_URL,
                api_token=settings.SERVER_API_TOKEN,
                timeout=settings.REQUEST_TIMEOUT_SECONDS,
                send_timeout=settings.SEND_TIMEOUT_SECONDS,
                transport=transport,
            ),
            renderer=OrderDocumentRenderer(),
            code_prefix=settings.OFFLINE_CODE_PREFIX,
            render_timeout=settings.SNAPSHOT_RENDER_TIMEOUT_SECONDS,
            reference_page_size=settings.REFERENCE_PAGE_SIZE,
        )

    async def start(self, auto_sync: bool = True, probe: bool = True) -> None:
        """Open the store, seed statuses and wire connectivity-driven sync.

        An unavailable store does not stop the runtime: submissions still get
        an order code (held in memory) and every store call retries the open.
        """
        try:
            await self.store.open()
        except StorageUnavailable as exc:
            logger.error("Starting without a local store: %s", exc)
        await self.reference_sync.initialize()
        await self.order_sync.refresh_pending_count()
        if auto_sync:
            self._unsubscribers.append(self.order_sync.start_auto_sync())
            self._unsubscribers.append(self.reference_sync.start_auto_sync())
        if probe:
            self.connectivity.start()
        logger.info(
            "Offline runtime started (online=%s, probing=%s)",
            self.connectivity.is_online(),
            self.connectivity.probing,
        )

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.connectivity.stop()
        await self.order_sync.wait_idle()
        await self.reference_sync.wait_idle()
        await self.store.close()

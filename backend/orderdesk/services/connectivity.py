"""Online/offline signal with change notifications and optional probing."""

import asyncio
import contextlib
import logging
from typing import Callable

import httpx

from orderdesk.core.events import Listeners

logger = logging.getLogger(__name__)


class ConnectivitySignal:
    """Point-in-time connectivity flag plus a subscribable change stream.

    Host platform events are pushed through ``set_online``. When a probe URL
    is configured, ``start()`` also polls it every ``probe_interval`` seconds:
    any HTTP response counts as reachable, a transport error or timeout as
    offline. Each discrete transition is delivered exactly once.
    """

    def __init__(
        self,
        initial: bool = True,
        probe_url: str | None = None,
        probe_interval: float = 5,
        timeout: float = 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._online = initial
        self.probe_url = probe_url or None
        self.probe_interval = probe_interval
        self.timeout = timeout
        self._transport = transport
        self._listeners = Listeners("connectivity")
        self._probe_task: asyncio.Task | None = None

    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    def set_online(self, online: bool) -> bool:
        """Record a platform event. Returns True when it was a transition."""
        online = bool(online)
        if online == self._online:
            return False
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._listeners.emit(online)
        return True

    async def probe_once(self) -> bool:
        if not self.probe_url:
            return self._online
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                await client.head(self.probe_url)
            reachable = True
        except httpx.TransportError as exc:
            logger.debug("Reachability probe failed: %s", exc)
            reachable = False
        self.set_online(reachable)
        return reachable

    async def _probe_loop(self) -> None:
        while True:
            await self.probe_once()
            await asyncio.sleep(self.probe_interval)

    @property
    def probing(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    def start(self) -> None:
        if not self.probe_url or self.probing:
            return
        self._probe_task = asyncio.create_task(
            self._probe_loop(), name="connectivity-probe"
        )

    async def stop(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

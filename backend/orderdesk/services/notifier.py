"""User-facing notifications emitted by background sync."""

import logging
from typing import Callable

from orderdesk.core.events import Listeners

logger = logging.getLogger(__name__)

DEFAULT_TAG = "orderdesk-sync"


class SyncNotifier:
    """Logs each notification and forwards it to presentation-layer subscribers."""

    def __init__(self):
        self._listeners = Listeners("notifications")

    def subscribe(self, callback: Callable[[str, str, str], None]) -> Callable[[], None]:
        return self._listeners.add(callback)

    async def notify(self, title: str, body: str, tag: str = DEFAULT_TAG) -> None:
        logger.info("Notification [%s] %s: %s", tag, title, body)
        self._listeners.emit(title, body, tag)

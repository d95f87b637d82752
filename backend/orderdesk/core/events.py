"""Listener registry shared by the repository, the sync engines and the notifier."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Listeners:
    """Ordered set of callbacks notified synchronously on every emit.

    A failing callback is logged and skipped so one broken subscriber cannot
    stop the others (or the state change that triggered the emit).
    """

    def __init__(self, name: str):
        self.name = name
        self._callbacks: list[Callable[..., Any]] = []

    def add(self, callback: Callable[..., Any]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, *args: Any) -> None:
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener %r failed on %s", callback, self.name)

    def __len__(self) -> int:
        return len(self._callbacks)

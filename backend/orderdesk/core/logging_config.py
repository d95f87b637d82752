"""Root logger setup for the API process and the background worker."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once: an existing orderdesk handler is replaced.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_orderdesk", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._orderdesk = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request at INFO; keep connectivity probes quiet
    logging.getLogger("httpx").setLevel(logging.WARNING)

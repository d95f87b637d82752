"""Celery tasks running sync passes with no UI process alive.

The worker builds its own runtime over the same local database as the API
process; records are only ever changed one at a time, so both may run side
by side.
"""

import asyncio
import logging

from orderdesk.celery_app import celery
from orderdesk.config import settings
from orderdesk.runtime import OfflineRuntime
from orderdesk.schemas.sync import SyncResult

logger = logging.getLogger(__name__)


def _build_runtime() -> OfflineRuntime:
    return OfflineRuntime.build(settings)


@celery.task(name="orderdesk.tasks.sync.sync_offline_orders", bind=True, max_retries=2)
def sync_offline_orders(self) -> dict:
    """Run one offline-order sync pass.

    Scheduled by celery beat every ORDER_SYNC_INTERVAL_SECONDS.
    """
    logger.info("Starting background offline order sync...")
    try:
        result = asyncio.run(_run_order_sync(_build_runtime()))
    except Exception as exc:
        logger.exception("Background offline order sync failed: %s", exc)
        raise self.retry(exc=exc, countdown=60)
    logger.info("Background sync result: success=%d, failed=%d", result.success, result.failed)
    return result.model_dump()


@celery.task(name="orderdesk.tasks.sync.refresh_reference_data", bind=True, max_retries=2)
def refresh_reference_data(self) -> bool:
    logger.info("Starting background reference data refresh...")
    try:
        return asyncio.run(_run_reference_sync(_build_runtime()))
    except Exception as exc:
        logger.exception("Background reference data refresh failed: %s", exc)
        raise self.retry(exc=exc, countdown=300)


async def _run_order_sync(runtime: OfflineRuntime) -> SyncResult:
    await runtime.start(auto_sync=False, probe=False)
    try:
        await runtime.connectivity.probe_once()
        if not runtime.connectivity.is_online():
            logger.info("Order server unreachable; background sync skipped")
            return SyncResult()
        return await runtime.order_sync.trigger_sync()
    finally:
        await runtime.stop()


async def _run_reference_sync(runtime: OfflineRuntime) -> bool:
    await runtime.start(auto_sync=False, probe=False)
    try:
        await runtime.connectivity.probe_once()
        return await runtime.reference_sync.sync_all()
    finally:
        await runtime.stop()

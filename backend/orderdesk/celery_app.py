from celery import Celery
from celery.signals import after_setup_logger

from orderdesk.config import settings
from orderdesk.core.logging_config import configure_logging

celery = Celery(
    "orderdesk",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["orderdesk.tasks.sync"],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Paris",
    enable_utc=True,
    beat_schedule={
        "sync-offline-orders": {
            "task": "orderdesk.tasks.sync.sync_offline_orders",
            "schedule": settings.ORDER_SYNC_INTERVAL_SECONDS,
        },
        "refresh-reference-data": {
            "task": "orderdesk.tasks.sync.refresh_reference_data",
            "schedule": settings.REFERENCE_SYNC_INTERVAL_MINUTES * 60,
        },
    },
)


@after_setup_logger.connect
def _setup_worker_logging(logger, *args, **kwargs):
    configure_logging(settings.LOG_LEVEL)

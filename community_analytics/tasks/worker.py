import logging
from pathlib import Path

from celery import Celery
from celery.signals import setup_logging
from dotenv import load_dotenv

from community_analytics.config import settings


logger = logging.getLogger(__name__)

# Worker processes are started outside the API, so load .env for them too
load_dotenv(dotenv_path=Path(".") / ".env")

celery_app = Celery(
    "community_analytics",
    broker=str(settings.REDIS_URL),
    backend=str(settings.REDIS_URL),
    include=["community_analytics.tasks.analytics_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=60 * 60 * 24,  # 1 day
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.TASK_TIME_LIMIT,
    task_acks_late=True,
    worker_prefetch_multiplier=1,  # training and snapshots are long-running
    worker_hijack_root_logger=False,
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,
    broker_transport_options={
        "visibility_timeout": settings.TASK_TIME_LIMIT * 2,
    },
)


@setup_logging.connect
def configure_worker_logging(**_kwargs) -> None:
    """Give worker logs the same rich output as the API."""
    from community_analytics.middleware import configure_logging

    configure_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
    logger.info(
        "Celery worker using Redis at %s:%s",
        settings.REDIS_HOST,
        settings.REDIS_PORT,
    )

"""
Celery Worker Configuration

Report exports run off the request path. Redis is both the broker and
the result backend; the API only needs the broker to queue a report.

Run with:
    celery -A bistro.celery_worker worker -Q reports --loglevel=info
"""

from celery import Celery
from celery.signals import after_setup_logger

from bistro.core.config import get_settings, setup_logging

settings = get_settings()

REPORTS_QUEUE = "reports"

celery_app = Celery(
    "bistro_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["bistro.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Exports rewrite one workbook under a file lock; two workers are plenty
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    task_routes={"bistro.tasks.export_orders_report": {"queue": REPORTS_QUEUE}},
    task_soft_time_limit=120,
    task_time_limit=180,

    result_expires=24 * 3600,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
    # Fail fast when the API queues a report and Redis is down
    broker_connection_timeout=3,
    task_publish_retry_policy={
        "max_retries": 1,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 1,
    },
)


@after_setup_logger.connect
def use_application_log_format(logger, **kwargs) -> None:
    setup_logging()


if __name__ == "__main__":
    celery_app.start()

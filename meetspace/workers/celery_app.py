"""
Celery application for Meetspace workers.
Email notifications and maintenance jobs share one app and one Redis broker.
"""

import asyncio
import logging

from celery import Celery

from ..core.config import config

logger = logging.getLogger(__name__)

EMAIL_QUEUE = "email_notifications"
MAINTENANCE_QUEUE = "maintenance"

CELERY_ROUTES = {
    "meetspace.workers.tasks.send_ticket_confirmation": {"queue": EMAIL_QUEUE},
    "meetspace.workers.tasks.send_payment_failed": {"queue": EMAIL_QUEUE},
    "meetspace.workers.tasks.reconcile_missing_tickets": {"queue": MAINTENANCE_QUEUE},
}

# Task time limits
CELERY_TASK_TIME_LIMIT = 300
CELERY_TASK_SOFT_TIME_LIMIT = 240

# Periodic sweep for orders left without tickets
RECONCILE_INTERVAL_SECONDS = 15 * 60


def create_celery_app() -> Celery:
    """Create and configure the worker Celery app."""
    redis_url = asyncio.run(config.get_redis_url())

    celery_app = Celery(
        "meetspace_workers",
        broker=redis_url,
        backend=redis_url,
        include=["meetspace.workers.tasks"]
    )

    celery_app.conf.update(
        task_track_started=True,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        broker_connection_retry_on_startup=True,
        result_expires=3600,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_time_limit=CELERY_TASK_TIME_LIMIT,
        task_soft_time_limit=CELERY_TASK_SOFT_TIME_LIMIT,
        task_routes=CELERY_ROUTES,
        beat_schedule={
            "reconcile-missing-tickets": {
                "task": "meetspace.workers.tasks.reconcile_missing_tickets",
                "schedule": RECONCILE_INTERVAL_SECONDS,
                "options": {"queue": MAINTENANCE_QUEUE},
            },
        },
    )

    if redis_url.startswith("rediss://"):
        celery_app.conf.update(
            broker_use_ssl={"ssl_cert_reqs": "CERT_NONE"},
            redis_backend_use_ssl={"ssl_cert_reqs": "CERT_NONE"},
        )

    return celery_app


celery_app = create_celery_app()

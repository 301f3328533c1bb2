"""
Notification dispatch for Meetspace.
Tasks are sent by name to Celery workers; the API never imports worker code.
"""
import ssl
import logging
from typing import Any, Dict, List, Optional

from celery import Celery

from ..core.config import config

logger = logging.getLogger(__name__)

EMAIL_QUEUE = "email_notifications"
MAINTENANCE_QUEUE = "maintenance"


class NotificationService:
    """
    Sends email and maintenance tasks to Celery workers.
    Dispatch failures are logged and reported as False.
    """

    def __init__(self):
        self.enabled = True
        self._celery_app: Optional[Celery] = None
        self._initialized = False

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False

    async def _initialize_celery(self):
        """Initialize a producer-only Celery app."""
        if self._initialized:
            return

        try:
            redis_url = await config.get_redis_url()
            self._celery_app = Celery("meetspace_api")
            conf = {
                "broker_url": redis_url,
                "result_backend": redis_url,
                "task_serializer": "json",
                "result_serializer": "json",
                "accept_content": ["json"],
            }
            if redis_url.startswith("rediss://"):
                conf["broker_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}
                conf["redis_backend_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}
            self._celery_app.conf.update(**conf)

            self._initialized = True
            logger.info("Celery app initialized for notification dispatch")

        except Exception as e:
            logger.error(f"Failed to initialize Celery app: {e}")
            self._celery_app = None
            self._initialized = False

    async def _send_task(self, task_name: str, args: List[Any], queue: str) -> bool:
        if not self.enabled:
            logger.debug(f"Notifications disabled, skipping {task_name}")
            return False

        try:
            if not self._initialized:
                await self._initialize_celery()

            if not self._celery_app:
                logger.error(f"Celery app not initialized, cannot send {task_name}")
                return False

            task = self._celery_app.send_task(task_name, args=args, queue=queue)
            logger.info(f"Task {task_name} queued with ID: {task.id}")
            return True

        except Exception as e:
            logger.error(f"Failed to send task {task_name}: {e}")
            return False

    async def send_ticket_confirmation(self, order_data: Dict[str, Any]) -> bool:
        """
        Queue the ticket/registration confirmation email.

        Args:
            order_data: Order summary with email, names, event title and tickets
        """
        return await self._send_task(
            "meetspace.workers.tasks.send_ticket_confirmation",
            [order_data],
            EMAIL_QUEUE
        )

    async def send_payment_failed(self, order_data: Dict[str, Any]) -> bool:
        return await self._send_task(
            "meetspace.workers.tasks.send_payment_failed",
            [order_data],
            EMAIL_QUEUE
        )

    async def schedule_ticket_reconciliation(self, order_id: Optional[int] = None) -> bool:
        """Ask the maintenance worker to backfill missing tickets."""
        return await self._send_task(
            "meetspace.workers.tasks.reconcile_missing_tickets",
            [order_id],
            MAINTENANCE_QUEUE
        )


# Global notification service instance
notification_service = NotificationService()

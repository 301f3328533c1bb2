"""
Tests for Notification Service task dispatch.
"""

import pytest
from unittest.mock import MagicMock

from meetspace.services.notification_service import NotificationService


@pytest.fixture
def notification_service():
    service = NotificationService()
    service._celery_app = MagicMock()
    service._celery_app.send_task.return_value = MagicMock(id="task-1")
    service._initialized = True
    return service


class TestNotificationService:
    """Test cases for NotificationService."""

    @pytest.mark.asyncio
    async def test_ticket_confirmation_routed_to_email_queue(self, notification_service):
        order_data = {"order_id": 1, "email": "attendee@example.com"}

        assert await notification_service.send_ticket_confirmation(order_data) is True

        notification_service._celery_app.send_task.assert_called_once_with(
            "meetspace.workers.tasks.send_ticket_confirmation",
            args=[order_data],
            queue="email_notifications"
        )

    @pytest.mark.asyncio
    async def test_payment_failed(self, notification_service):
        assert await notification_service.send_payment_failed({"order_id": 1}) is True

        name = notification_service._celery_app.send_task.call_args.args[0]
        assert name == "meetspace.workers.tasks.send_payment_failed"

    @pytest.mark.asyncio
    async def test_reconciliation_routed_to_maintenance_queue(self, notification_service):
        assert await notification_service.schedule_ticket_reconciliation(9) is True

        notification_service._celery_app.send_task.assert_called_once_with(
            "meetspace.workers.tasks.reconcile_missing_tickets",
            args=[9],
            queue="maintenance"
        )

    @pytest.mark.asyncio
    async def test_disabled_service_sends_nothing(self, notification_service):
        notification_service.disable()

        assert await notification_service.send_ticket_confirmation({"order_id": 1}) is False
        notification_service._celery_app.send_task.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispatch_error_is_reported(self, notification_service):
        notification_service._celery_app.send_task.side_effect = ConnectionError("broker down")

        assert await notification_service.send_ticket_confirmation({"order_id": 1}) is False

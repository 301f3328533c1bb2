"""
Tests for Celery worker tasks.
Tasks run eagerly with apply(); email delivery and the database manager are patched.
"""

import pytest
from decimal import Decimal
from unittest.mock import patch

from meetspace.models.order import OrderType, Ticket
from meetspace.services.order_service import build_tickets
from meetspace.workers.tasks import (
    reconcile_missing_tickets,
    render_payment_failed,
    render_ticket_confirmation,
    send_payment_failed,
    send_ticket_confirmation,
)


@pytest.fixture
def order_data():
    return {
        "order_id": 17,
        "email": "attendee@example.com",
        "first_name": "Abel",
        "event_title": "Pycon Addis",
        "event_date": "2024-05-15T09:00:00",
        "is_virtual": False,
        "amount": 200.0,
        "currency": "ETB",
        "ticket_ids": ["TKT-1", "TKT-2"],
    }


class TestRenderers:

    def test_ticket_confirmation_lists_tickets(self, order_data):
        rendered = render_ticket_confirmation(order_data)

        assert rendered["subject"] == "You're registered - Pycon Addis"
        assert "TKT-1, TKT-2" in rendered["text_content"]
        assert "200.0 ETB" in rendered["html_content"]

    def test_free_virtual_confirmation(self, order_data):
        order_data.update(is_virtual=True, amount=0, meeting_link="https://8x8.vc/app/event-1-2")

        rendered = render_ticket_confirmation(order_data)

        assert "Join online: https://8x8.vc/app/event-1-2" in rendered["text_content"]
        assert "Price: Free" in rendered["text_content"]

    def test_payment_failed(self, order_data):
        rendered = render_payment_failed(order_data)

        assert rendered["subject"] == "Payment not completed - Pycon Addis"
        assert "order 17" in rendered["text_content"]


class TestEmailTasks:
    """Test email task results."""

    def test_send_ticket_confirmation(self, order_data):
        with patch("meetspace.workers.tasks.email_service.send_email", return_value=True) as send:
            result = send_ticket_confirmation.apply(args=[order_data]).get()

        assert result["success"] is True
        assert result["email"] == "attendee@example.com"
        assert send.call_args.kwargs["to_email"] == "attendee@example.com"
        assert send.call_args.kwargs["subject"] == "You're registered - Pycon Addis"

    def test_send_payment_failed(self, order_data):
        with patch("meetspace.workers.tasks.email_service.send_email", return_value=True):
            result = send_payment_failed.apply(args=[order_data]).get()

        assert result["success"] is True
        assert result["order_id"] == 17

    def test_missing_recipient(self, order_data):
        order_data["email"] = None

        with patch("meetspace.workers.tasks.email_service.send_email") as send:
            result = send_ticket_confirmation.apply(args=[order_data]).get()

        assert result["success"] is False
        assert result["error"] == "Recipient email missing"
        send.assert_not_called()


class TestReconcileMissingTickets:
    """Test the ticket reconciliation task."""

    def test_sweep_backfills_orders(self, db_session, worker_db_manager, make_event, make_order):
        event = make_event(price=Decimal("100"))
        short = make_order(event, quantity=2, order_type=OrderType.PAID_EVENT.value)
        make_order(event, quantity=1, order_type=OrderType.FREE_VIRTUAL_EVENT_RSVP.value)

        with patch("meetspace.workers.tasks.db_manager", worker_db_manager):
            result = reconcile_missing_tickets.apply(args=[None]).get()

        assert result["success"] is True
        assert result["orders_checked"] == 1
        assert result["tickets_created"] == 2
        assert db_session.query(Ticket).filter(Ticket.order_id == short.id).count() == 2

    def test_single_order(self, db_session, worker_db_manager, make_event, make_order):
        event = make_event(price=Decimal("100"))
        order = make_order(event, quantity=3, order_type=OrderType.PAID_EVENT.value)
        db_session.add_all(build_tickets(order, event, units=1))
        db_session.commit()

        with patch("meetspace.workers.tasks.db_manager", worker_db_manager):
            result = reconcile_missing_tickets.apply(args=[order.id]).get()

        assert result["orders_checked"] == 1
        assert result["tickets_created"] == 2

    def test_unknown_order(self, worker_db_manager):
        with patch("meetspace.workers.tasks.db_manager", worker_db_manager):
            result = reconcile_missing_tickets.apply(args=[999]).get()

        assert result == {
            "success": True,
            "orders_checked": 0,
            "tickets_created": 0,
            "timestamp": result["timestamp"],
        }

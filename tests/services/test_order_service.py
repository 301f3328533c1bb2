"""
Tests for Order Service.
Free RSVPs, order ownership and ticket backfill.
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from meetspace.core.exceptions import PermissionDenied, ResourceNotFound, ValidationFailed
from meetspace.db.repositories import OrderRepository
from meetspace.models.order import Order, OrderLineItem, OrderStatus, OrderType, Ticket
from meetspace.services.order_service import OrderService, build_tickets


@pytest.fixture
def order_service():
    return OrderService()


def rsvp_payload(event, order_type="FREE_LOCATION_EVENT_RSVP", **overrides):
    payload = {
        "event_id": event.id,
        "first_name": "Abel",
        "last_name": "Attendee",
        "email": "attendee@example.com",
        "phone": None,
        "order_type": order_type,
        "quantity": 1,
    }
    payload.update(overrides)
    return payload


class TestBuildTickets:
    """Test ticket construction."""

    def test_one_ticket_per_unit(self, make_event):
        event = make_event()
        order = Order(id=5, event_id=event.id, user_id=2, first_name="Abel", last_name="Attendee",
                      email="attendee@example.com", currency="ETB")
        order.line_items = [
            OrderLineItem(name="VIP", price=Decimal("100"), quantity=2),
            OrderLineItem(name="Regular", price=Decimal("50"), quantity=1),
        ]

        tickets = build_tickets(order, event)

        assert [ticket.ticket_name for ticket in tickets] == ["VIP", "VIP", "Regular"]
        assert len({ticket.id for ticket in tickets}) == 3
        assert all(ticket.qr_code_value == ticket.id for ticket in tickets)
        assert all(ticket.order_id == 5 for ticket in tickets)

    def test_limited_units(self, make_event):
        event = make_event()
        order = Order(id=5, event_id=event.id, user_id=2, first_name="A", last_name="B",
                      email="a@example.com", currency="ETB")
        order.line_items = [OrderLineItem(name="VIP", price=Decimal("100"), quantity=4)]

        assert len(build_tickets(order, event, units=1)) == 1
        assert build_tickets(order, event, units=0) == []


class TestCreateRSVP:
    """Test free event registration."""

    @pytest.mark.asyncio
    async def test_location_rsvp_issues_tickets(self, db_session, order_service, make_event, attendee):
        event = make_event()

        order, created, tickets = await order_service.create_rsvp(
            db_session, rsvp_payload(event, quantity=3), attendee
        )

        assert created is True
        assert order.status == OrderStatus.COMPLETED.value
        assert order.payment_status == "FREE"
        assert order.payment_method == "N/A (RSVP)"
        assert order.amount == 0
        assert len(tickets) == 3
        assert OrderRepository(db_session).count_tickets(order.id) == 3

    @pytest.mark.asyncio
    async def test_quantity_is_clamped(self, db_session, order_service, make_event, attendee):
        event = make_event()

        order, _, tickets = await order_service.create_rsvp(
            db_session, rsvp_payload(event, quantity=40), attendee
        )

        assert order.total_quantity == 10
        assert len(tickets) == 10

    @pytest.mark.asyncio
    async def test_virtual_rsvp_has_no_tickets(self, db_session, order_service, make_event, attendee):
        event = make_event(is_virtual=True, location_city=None, location_address=None)

        order, created, tickets = await order_service.create_rsvp(
            db_session, rsvp_payload(event, order_type="FREE_VIRTUAL_EVENT_RSVP", quantity=5), attendee
        )

        assert created is True
        assert tickets == []
        assert order.total_quantity == 1
        assert order.order_type == OrderType.FREE_VIRTUAL_EVENT_RSVP.value

    @pytest.mark.asyncio
    async def test_virtual_rsvp_is_idempotent(self, db_session, order_service, make_event, attendee):
        event = make_event(is_virtual=True, location_city=None, location_address=None)
        payload = rsvp_payload(event, order_type="FREE_VIRTUAL_EVENT_RSVP")

        first, _, _ = await order_service.create_rsvp(db_session, payload, attendee)
        second, created, tickets = await order_service.create_rsvp(db_session, payload, attendee)

        assert created is False
        assert second.id == first.id
        assert tickets == []
        assert db_session.query(Order).count() == 1

    @pytest.mark.asyncio
    async def test_free_tier_name_is_used(self, db_session, order_service, make_event, attendee):
        event = make_event(ticket_tiers=[{"name": "Community Pass", "price": Decimal("0")}])

        _, _, tickets = await order_service.create_rsvp(db_session, rsvp_payload(event), attendee)

        assert tickets[0].ticket_name == "Community Pass"

    @pytest.mark.asyncio
    async def test_unknown_event(self, db_session, order_service, make_event, attendee):
        event = make_event()
        payload = rsvp_payload(event, event_id=9999)

        with pytest.raises(ResourceNotFound) as exc_info:
            await order_service.create_rsvp(db_session, payload, attendee)

        assert exc_info.value.code == "EVENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_private_event_denied(self, db_session, order_service, make_event, attendee):
        event = make_event(visibility_status="private", restricted_to=["guest@example.com"])

        with pytest.raises(PermissionDenied):
            await order_service.create_rsvp(db_session, rsvp_payload(event), attendee)

    @pytest.mark.asyncio
    async def test_invalid_email(self, db_session, order_service, make_event, attendee):
        event = make_event()

        with pytest.raises(ValidationFailed) as exc_info:
            await order_service.create_rsvp(db_session, rsvp_payload(event, email="not-an-email"), attendee)

        assert exc_info.value.code == "INVALID_EMAIL"

    @pytest.mark.asyncio
    async def test_paid_event_rejected(self, db_session, order_service, make_event, attendee):
        event = make_event(price=Decimal("100"))

        with pytest.raises(ValidationFailed) as exc_info:
            await order_service.create_rsvp(db_session, rsvp_payload(event), attendee)

        assert exc_info.value.code == "EVENT_NOT_FREE"
        assert db_session.query(Order).count() == 0

    @pytest.mark.asyncio
    async def test_confirmation_is_queued(self, db_session, order_service, make_event, attendee):
        event = make_event()

        with patch(
            "meetspace.services.order_service.notification_service.send_ticket_confirmation",
            new_callable=AsyncMock
        ) as mock_send:
            order, _, tickets = await order_service.create_rsvp(db_session, rsvp_payload(event), attendee)

        mock_send.assert_awaited_once()
        summary = mock_send.call_args.args[0]
        assert summary["order_id"] == order.id
        assert summary["email"] == "attendee@example.com"
        assert summary["ticket_ids"] == [tickets[0].id]

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_rsvp(self, db_session, order_service, make_event, attendee):
        event = make_event()

        with patch(
            "meetspace.services.order_service.notification_service.send_ticket_confirmation",
            new_callable=AsyncMock,
            side_effect=RuntimeError("broker down")
        ):
            _, created, _ = await order_service.create_rsvp(db_session, rsvp_payload(event), attendee)

        assert created is True


class TestOrderLookup:
    """Test order ownership checks."""

    @pytest.mark.asyncio
    async def test_owner_gets_details(self, db_session, order_service, make_event, make_order, attendee):
        event = make_event()
        order = make_order(event, user=attendee)

        details = await order_service.get_order_details(db_session, order.id, attendee)

        assert details["id"] == order.id
        assert details["event_title"] == "Python Meetup"
        assert details["location"]["city"] == "Addis Ababa"

    @pytest.mark.asyncio
    async def test_other_user_denied(self, db_session, order_service, make_event, make_order, attendee, guest):
        order = make_order(make_event(), user=attendee)

        with pytest.raises(PermissionDenied):
            await order_service.get_order_details(db_session, order.id, guest)

    @pytest.mark.asyncio
    async def test_missing_order(self, db_session, order_service, attendee):
        with pytest.raises(ResourceNotFound) as exc_info:
            await order_service.get_order_tickets(db_session, 404, attendee)

        assert exc_info.value.code == "ORDER_NOT_FOUND"


class TestBackfillMissingTickets:
    """Test ticket reconciliation for completed orders."""

    def test_backfills_only_missing_units(self, db_session, order_service, make_event, make_order):
        event = make_event(price=Decimal("100"))
        order = make_order(event, quantity=3, order_type=OrderType.PAID_EVENT.value, amount=Decimal("300"))
        OrderRepository(db_session).add_tickets(build_tickets(order, event, units=1))
        db_session.commit()

        created = order_service.backfill_missing_tickets(db_session, order)
        db_session.commit()

        assert created == 2
        assert db_session.query(Ticket).filter(Ticket.order_id == order.id).count() == 3
        assert order_service.backfill_missing_tickets(db_session, order) == 0

    def test_pending_order_is_skipped(self, db_session, order_service, make_event, make_order):
        event = make_event(price=Decimal("100"))
        order = make_order(
            event, quantity=2,
            status=OrderStatus.PENDING_PAYMENT.value,
            order_type=OrderType.PAID_EVENT.value,
        )

        assert order_service.backfill_missing_tickets(db_session, order) == 0

    def test_repository_finds_orders_missing_tickets(self, db_session, make_event, make_order):
        event = make_event(price=Decimal("100"))
        short = make_order(event, quantity=2, order_type=OrderType.PAID_EVENT.value)
        full = make_order(event, quantity=1, order_type=OrderType.PAID_EVENT.value)
        make_order(event, quantity=1, order_type=OrderType.FREE_VIRTUAL_EVENT_RSVP.value)
        repository = OrderRepository(db_session)
        repository.add_tickets(build_tickets(full, event))
        db_session.commit()

        assert [order.id for order in repository.find_completed_with_missing_tickets()] == [short.id]

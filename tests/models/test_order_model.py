"""
Tests for Order, Ticket and Payment models.
"""

from decimal import Decimal

from meetspace.models.order import Order, OrderLineItem, Ticket, generate_ticket_id
from meetspace.models.payment import Payment, PaymentState


class TestOrderModel:
    """Test cases for Order and its line items."""

    def test_total_quantity_sums_line_items(self):
        order = Order()
        order.line_items = [
            OrderLineItem(name="VIP", price=Decimal("100"), quantity=2),
            OrderLineItem(name="Regular", price=Decimal("50"), quantity=3),
        ]

        assert order.total_quantity == 5

    def test_order_to_dict(self, make_event, make_order):
        event = make_event()
        order = make_order(event, quantity=2)
        data = order.to_dict()

        assert data["event_id"] == event.id
        assert data["status"] == "COMPLETED"
        assert data["line_items"] == [{
            "ticket_type_id": None,
            "name": "General Admission",
            "price": 0.0,
            "quantity": 2,
        }]

    def test_generate_ticket_id_is_unique(self):
        ids = {generate_ticket_id() for _ in range(50)}

        assert len(ids) == 50
        assert all(len(value) == 36 for value in ids)

    def test_ticket_to_dict_uses_id_as_qr_value(self):
        ticket_id = generate_ticket_id()
        ticket = Ticket(
            id=ticket_id,
            qr_code_value=ticket_id,
            order_id=1,
            event_id=1,
            user_id=2,
            holder_first_name="Abel",
            holder_last_name="Attendee",
            holder_email="attendee@example.com",
            ticket_name="VIP",
            price=Decimal("100"),
            currency="ETB",
            is_virtual=False,
            status="valid",
        )
        data = ticket.to_dict()

        assert data["qr_code_value"] == data["id"] == ticket_id
        assert data["holder"]["email"] == "attendee@example.com"


class TestPaymentModel:
    """Test cases for Payment status history."""

    def test_record_status_appends_history(self, db_session):
        payment = Payment(
            tx_ref="CHAPA-1-1700000000000",
            user_id=2,
            event_id=1,
            amount=Decimal("200"),
            currency="ETB",
            email="attendee@example.com",
            payment_metadata={"order_id": 1},
        )
        payment.record_status(PaymentState.INITIATED.value, "Payment initialization started")
        payment.record_status(PaymentState.PENDING.value, "Payment initialized with Chapa, user redirected.")
        db_session.add(payment)
        db_session.commit()

        assert payment.status == "pending"
        data = payment.to_dict()
        assert data["payment_status"]["current"] == "pending"
        assert [entry["status"] for entry in data["payment_status"]["history"]] == ["initiated", "pending"]

"""
Order Service for Meetspace.
Handles free RSVP orders, order lookups and ticket issuance.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import PermissionDenied, ResourceNotFound, ValidationFailed
from ..core.validators import is_valid_email
from ..db.repositories import EventRepository, OrderRepository
from ..models.event import Event
from ..models.order import (
    Order, OrderLineItem, OrderStatus, OrderPaymentStatus, OrderType, Ticket, generate_ticket_id
)
from .notification_service import notification_service
from .registration import assert_registration_allowed, clamp_quantity
from .visibility import can_view, viewer_id

logger = logging.getLogger(__name__)

RSVP_PAYMENT_METHOD = "N/A (RSVP)"


def build_tickets(order: Order, event: Event, units: Optional[int] = None) -> List[Ticket]:
    """
    Build one ticket per purchased unit of the order's line items.

    Each ticket gets a fresh UUID that doubles as its QR payload. When
    ``units`` is given only that many tickets are built, taken from the line
    items in order.
    """
    tickets: List[Ticket] = []
    remaining = order.total_quantity if units is None else units

    for item in order.line_items:
        for _ in range(item.quantity):
            if remaining <= 0:
                return tickets
            ticket_id = generate_ticket_id()
            tickets.append(Ticket(
                id=ticket_id,
                qr_code_value=ticket_id,
                order_id=order.id,
                event_id=order.event_id,
                user_id=order.user_id,
                holder_first_name=order.first_name,
                holder_last_name=order.last_name,
                holder_email=order.email,
                ticket_name=item.name,
                price=item.price,
                currency=order.currency,
                is_virtual=bool(event.is_virtual) if event is not None else False,
            ))
            remaining -= 1

    return tickets


def order_summary(order: Order, event: Optional[Event], tickets: Optional[List[Ticket]] = None) -> Dict[str, Any]:
    """Payload for confirmation emails."""
    return {
        "order_id": order.id,
        "email": order.email,
        "first_name": order.first_name,
        "last_name": order.last_name,
        "event_id": order.event_id,
        "event_title": event.title if event else "Event",
        "event_date": event.date.isoformat() if event and event.date else None,
        "is_virtual": bool(event.is_virtual) if event else False,
        "meeting_link": event.meeting_link if event else None,
        "amount": float(order.amount or 0),
        "currency": order.currency,
        "ticket_ids": [ticket.id for ticket in tickets or []],
    }


class OrderService:
    """
    Order operations that do not involve the payment provider.
    """

    def _free_tier(self, event: Event):
        for tier in event.ticket_tiers:
            if float(tier.price or 0) == 0:
                return tier
        return None

    async def create_rsvp(
        self,
        session: Session,
        payload: Dict[str, Any],
        user: Dict[str, Any]
    ) -> Tuple[Order, bool, List[Ticket]]:
        """
        Register a user for a free event.

        Args:
            session: Database session
            payload: RSVP fields (event_id, first_name, last_name, email,
                phone, order_type, quantity)
            user: Authenticated user payload

        Returns:
            Tuple of (order, created flag, tickets issued by this call)

        Raises:
            ResourceNotFound: if the event does not exist
            PermissionDenied: if the event is private to the user
            ValidationFailed: on invalid email or registration rules
        """
        event = EventRepository(session).get_by_id(payload["event_id"])
        if event is None:
            raise ResourceNotFound("Event not found", code="EVENT_NOT_FOUND")

        if not can_view(event, user):
            raise PermissionDenied("You do not have access to this event")

        if not is_valid_email(payload.get("email")):
            raise ValidationFailed("Invalid email address", code="INVALID_EMAIL")

        assert_registration_allowed(event, payload)

        user_id = viewer_id(user)
        orders = OrderRepository(session)
        quantity = clamp_quantity(payload.get("quantity", 1))

        if event.is_virtual:
            existing = orders.find_completed(event.id, user_id)
            if existing is not None:
                logger.info(f"User {user_id} already registered for virtual event {event.id} (order {existing.id})")
                return existing, False, []
            quantity = 1

        tier = self._free_tier(event)
        if tier is not None:
            ticket_name = tier.name
        elif event.is_virtual:
            ticket_name = "Free Virtual RSVP"
        else:
            ticket_name = "Free Admission"

        order = Order(
            user_id=user_id,
            event_id=event.id,
            first_name=payload["first_name"].strip(),
            last_name=payload["last_name"].strip(),
            email=payload["email"].strip(),
            phone=payload.get("phone") or None,
            amount=0,
            currency=event.currency or "USD",
            status=OrderStatus.COMPLETED.value,
            payment_status=OrderPaymentStatus.FREE.value,
            order_type=payload["order_type"],
            payment_method=RSVP_PAYMENT_METHOD,
        )
        order.line_items = [OrderLineItem(
            ticket_type_id=str(tier.id) if tier is not None else None,
            name=ticket_name,
            price=0,
            quantity=quantity,
        )]
        orders.create(order)

        tickets: List[Ticket] = []
        if payload["order_type"] == OrderType.FREE_LOCATION_EVENT_RSVP.value:
            tickets = orders.add_tickets(build_tickets(order, event))

        logger.info(
            f"RSVP order {order.id} created for event {event.id} by user {user_id} "
            f"with {len(tickets)} ticket(s)"
        )

        try:
            await notification_service.send_ticket_confirmation(order_summary(order, event, tickets))
        except Exception as e:
            logger.error(f"Failed to queue RSVP confirmation for order {order.id}: {e}")

        return order, True, tickets

    def _get_owned_order(self, session: Session, order_id: int, user: Dict[str, Any]) -> Order:
        order = OrderRepository(session).get_by_id(order_id)
        if order is None:
            raise ResourceNotFound("Order not found", code="ORDER_NOT_FOUND")
        if order.user_id != viewer_id(user):
            logger.warning(f"User {viewer_id(user)} attempted to access order {order_id}")
            raise PermissionDenied("You do not have permission to view this order")
        return order

    async def get_order_details(self, session: Session, order_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        """Order with the event fields a confirmation page needs."""
        order = self._get_owned_order(session, order_id, user)
        event = order.event
        details = order.to_dict()
        details.update({
            "event_title": event.title if event else None,
            "event_date": event.date.isoformat() if event and event.date else None,
            "is_virtual": bool(event.is_virtual) if event else False,
            "meeting_link": event.meeting_link if event else None,
            "location": event.to_dict()["location"] if event else None,
        })
        return details

    async def get_order_tickets(self, session: Session, order_id: int, user: Dict[str, Any]) -> List[Ticket]:
        order = self._get_owned_order(session, order_id, user)
        return OrderRepository(session).get_tickets(order.id)

    def backfill_missing_tickets(self, session: Session, order: Order) -> int:
        """
        Issue the tickets a COMPLETED order is missing.

        Returns:
            Number of tickets created
        """
        if order.status != OrderStatus.COMPLETED.value:
            return 0

        orders = OrderRepository(session)
        missing = order.total_quantity - orders.count_tickets(order.id)
        if missing <= 0:
            return 0

        tickets = orders.add_tickets(build_tickets(order, order.event, units=missing))
        logger.info(f"Backfilled {len(tickets)} ticket(s) for order {order.id}")
        return len(tickets)


# Global order service instance
order_service = OrderService()

"""
Registration state resolution for events.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationFailed
from ..db.repositories import OrderRepository, PaymentRepository
from ..models.event import Event
from ..models.order import OrderType
from .visibility import viewer_email, viewer_id

logger = logging.getLogger(__name__)

MIN_RSVP_QUANTITY = 1
MAX_RSVP_QUANTITY = 10

RSVP_ORDER_TYPES = {
    OrderType.FREE_VIRTUAL_EVENT_RSVP.value,
    OrderType.FREE_LOCATION_EVENT_RSVP.value,
}


class RegistrationError(ValidationFailed):
    """Registration request rejected by event rules."""


def clamp_quantity(quantity: Any) -> int:
    """Clamp a requested RSVP quantity into 1..10; garbage becomes 1."""
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        return MIN_RSVP_QUANTITY
    return max(MIN_RSVP_QUANTITY, min(MAX_RSVP_QUANTITY, value))


def required_order_type(event: Event) -> str:
    if event.is_virtual:
        return OrderType.FREE_VIRTUAL_EVENT_RSVP.value
    return OrderType.FREE_LOCATION_EVENT_RSVP.value


def is_registered(session: Session, event: Event, viewer: Optional[Dict[str, Any]]) -> bool:
    """
    Whether the viewer already holds a registration for the event.

    A COMPLETED order for the event and user counts first. Payments recorded
    without a linked order are covered by matching a successful payment for
    the event against the viewer's email.
    """
    uid = viewer_id(viewer)
    if uid is None:
        return False

    if OrderRepository(session).find_completed(event.id, uid) is not None:
        return True

    email = viewer_email(viewer)
    if email and PaymentRepository(session).find_successful_for_email(event.id, email) is not None:
        logger.info(f"User {uid} registered for event {event.id} through payment fallback")
        return True

    return False


def assert_registration_allowed(event: Event, payload: Dict[str, Any]) -> None:
    """
    Validate an RSVP request against the event.

    Raises:
        RegistrationError: if the event is not free or the order type does
            not match the event's format
    """
    order_type = payload.get("order_type")

    if order_type not in RSVP_ORDER_TYPES:
        raise RegistrationError(
            f"Invalid order type '{order_type}'",
            code="INVALID_ORDER_TYPE",
            details={"allowed": sorted(RSVP_ORDER_TYPES)}
        )

    if not event.is_free:
        raise RegistrationError(
            "This event requires payment. Use the payment flow to purchase tickets.",
            code="EVENT_NOT_FREE"
        )

    expected = required_order_type(event)
    if order_type != expected:
        raise RegistrationError(
            f"Order type {order_type} does not match this event; expected {expected}",
            code="ORDER_TYPE_MISMATCH",
            details={"expected": expected}
        )

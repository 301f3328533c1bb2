"""
Order and ticket models for Meetspace.
An order owns its line items and the tickets issued once it completes.
"""

import uuid
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Numeric, Text,
    ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow, isoformat


class OrderStatus(str, Enum):
    """Order status. COMPLETED is upper-case in stored data."""
    PENDING_PAYMENT = "pending_payment"
    COMPLETED = "COMPLETED"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"


class OrderPaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    FREE = "FREE"


class OrderType(str, Enum):
    PAID_EVENT = "PAID_EVENT"
    FREE_VIRTUAL_EVENT_RSVP = "FREE_VIRTUAL_EVENT_RSVP"
    FREE_LOCATION_EVENT_RSVP = "FREE_LOCATION_EVENT_RSVP"


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"
    CANCELLED = "cancelled"


def generate_ticket_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """
    Order linking a user to an event with ticket line items.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(40), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING_PAYMENT.value, index=True)
    payment_status = Column(String(20), nullable=False, default=OrderPaymentStatus.UNPAID.value)
    order_type = Column(String(40), nullable=False, default=OrderType.PAID_EVENT.value)
    payment_method = Column(String(50), nullable=True)

    chapa_tx_ref = Column(String(120), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    line_items = relationship(
        "OrderLineItem", back_populates="order",
        cascade="all, delete-orphan", lazy="selectin"
    )
    tickets = relationship("Ticket", back_populates="order", cascade="all, delete-orphan")
    event = relationship("Event")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_order_amount_non_negative"),
        Index("idx_order_event_user_status", "event_id", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, event_id={self.event_id}, status='{self.status}')>"

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.line_items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_id": self.event_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "amount": float(self.amount or 0),
            "currency": self.currency,
            "status": self.status,
            "payment_status": self.payment_status,
            "order_type": self.order_type,
            "payment_method": self.payment_method,
            "chapa_tx_ref": self.chapa_tx_ref,
            "paid_at": isoformat(self.paid_at),
            "line_items": [item.to_dict() for item in self.line_items],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class OrderLineItem(Base):
    __tablename__ = "order_line_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type_id = Column(String(64), nullable=True)
    name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="line_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_line_item_quantity_positive"),
        CheckConstraint("price >= 0", name="check_line_item_price_non_negative"),
    )

    def to_dict(self) -> dict:
        return {
            "ticket_type_id": self.ticket_type_id,
            "name": self.name,
            "price": float(self.price or 0),
            "quantity": self.quantity,
        }


class Ticket(Base):
    """
    One ticket per seat. The QR payload is the ticket's own id.
    """
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=generate_ticket_id)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    holder_first_name = Column(String(120), nullable=False)
    holder_last_name = Column(String(120), nullable=False)
    holder_email = Column(String(255), nullable=False)

    ticket_name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    is_virtual = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=TicketStatus.VALID.value)
    qr_code_value = Column(String(36), nullable=False, unique=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    order = relationship("Order", back_populates="tickets")

    def __repr__(self):
        return f"<Ticket(id='{self.id}', order_id={self.order_id})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "holder": {
                "first_name": self.holder_first_name,
                "last_name": self.holder_last_name,
                "email": self.holder_email,
            },
            "ticket_name": self.ticket_name,
            "price": float(self.price or 0),
            "currency": self.currency,
            "is_virtual": self.is_virtual,
            "status": self.status,
            "qr_code_value": self.qr_code_value,
            "created_at": isoformat(self.created_at),
        }

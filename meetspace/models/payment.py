"""
Payment models for Meetspace.
Status changes are appended to payment_status_history, never rewritten.
"""

from enum import Enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Text, JSON, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow, isoformat


class PaymentState(str, Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    VERIFICATION_FAILED = "verification_failed"
    FAILED_INITIALIZATION = "failed_initialization"


TERMINAL_PAYMENT_STATES = {
    PaymentState.SUCCESS.value,
    PaymentState.FAILED.value,
    PaymentState.VERIFICATION_FAILED.value,
    PaymentState.FAILED_INITIALIZATION.value,
}


class Payment(Base):
    """
    Payment record correlated with an order through its tx_ref.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    tx_ref = Column(String(120), unique=True, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    event_id = Column(Integer, nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=PaymentState.INITIATED.value, index=True)

    # "metadata" is reserved on declarative classes
    payment_metadata = Column("metadata", JSON, nullable=False, default=dict)
    request_id = Column(String(64), nullable=True)
    callback_url = Column(String(500), nullable=True)
    return_url = Column(String(500), nullable=True)
    checkout_url = Column(String(500), nullable=True)

    chapa_transaction_id = Column(String(120), nullable=True)
    amount_confirmed = Column(String(32), nullable=True)
    currency_confirmed = Column(String(3), nullable=True)
    payment_date = Column(DateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)
    verification_response = Column(JSON, nullable=True)
    last_verified = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    history = relationship(
        "PaymentStatusEntry", back_populates="payment",
        cascade="all, delete-orphan", order_by="PaymentStatusEntry.id", lazy="selectin"
    )

    __table_args__ = (
        Index("idx_payment_event_email_status", "event_id", "email", "status"),
    )

    def __repr__(self):
        return f"<Payment(tx_ref='{self.tx_ref}', status='{self.status}')>"

    def record_status(self, status: str, detail: str) -> "PaymentStatusEntry":
        """Set the current status and append it to the history log."""
        self.status = status
        entry = PaymentStatusEntry(status=status, detail=detail, timestamp=utcnow())
        self.history.append(entry)
        return entry

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tx_ref": self.tx_ref,
            "order_id": self.order_id,
            "event_id": self.event_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "email": self.email,
            "status": self.status,
            "checkout_url": self.checkout_url,
            "chapa_transaction_id": self.chapa_transaction_id,
            "amount_confirmed": self.amount_confirmed,
            "currency_confirmed": self.currency_confirmed,
            "payment_date": isoformat(self.payment_date),
            "failure_reason": self.failure_reason,
            "last_verified": isoformat(self.last_verified),
            "payment_status": {
                "current": self.status,
                "history": [entry.to_dict() for entry in self.history],
            },
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class PaymentStatusEntry(Base):
    """Append-only payment status history."""
    __tablename__ = "payment_status_history"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(30), nullable=False)
    detail = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    payment = relationship("Payment", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": isoformat(self.timestamp),
            "detail": self.detail,
        }


class FailedPaymentInitialization(Base):
    __tablename__ = "failed_payment_initializations"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(64), nullable=False, index=True)
    tx_ref = Column(String(120), nullable=True)
    error = Column(Text, nullable=False)
    status = Column(String(30), nullable=False, default=PaymentState.FAILED_INITIALIZATION.value)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

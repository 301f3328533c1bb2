"""
Subscription models for Meetspace.
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow, isoformat


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


UNLIMITED_EVENTS = -1


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="ETB")
    duration_days = Column(Integer, nullable=False, default=30)
    max_events = Column(Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price or 0),
            "currency": self.currency,
            "duration_days": self.duration_days,
            "max_events": self.max_events,
        }


class Subscription(Base):
    """
    Organizer plan record. Drives the event-creation quota.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True)
    plan_name = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    start_date = Column(DateTime, default=utcnow, nullable=False)
    end_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    plan = relationship("SubscriptionPlan", lazy="joined")

    __table_args__ = (
        Index("idx_subscription_user_status", "user_id", "status", "end_date"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan_name": self.plan_name,
            "status": self.status,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "created_at": isoformat(self.created_at),
        }

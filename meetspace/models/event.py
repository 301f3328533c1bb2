"""
Event models for Meetspace.
Visibility is stored normalized: a status column plus allow-list rows.
"""

from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, Numeric, JSON,
    ForeignKey, Index, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow, isoformat


class EventStatus(str, Enum):
    """Event lifecycle status."""
    DRAFT = "draft"
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VisibilityStatus(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class EventCategory(str, Enum):
    TECH = "tech"
    BUSINESS = "business"
    ARTS = "arts"
    SPORTS = "sports"
    HEALTH = "health"
    EDUCATION = "education"
    SOCIAL = "social"
    OTHER = "other"


class StreamingPlatform(str, Enum):
    JITSI = "JITSI"
    ZOOM = "ZOOM"
    GOOGLE_MEET = "GOOGLE_MEET"
    OTHER = "OTHER"


class Event(Base):
    """
    Event model representing an organizer's event.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(500), nullable=True)
    category = Column(String(30), nullable=False, default=EventCategory.OTHER.value, index=True)
    status = Column(String(20), nullable=False, default=EventStatus.UPCOMING.value, index=True)

    # Schedule
    date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=120)
    registration_deadline = Column(DateTime, nullable=True)

    # Virtual meeting
    is_virtual = Column(Boolean, nullable=False, default=False)
    streaming_platform = Column(String(20), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    room_name = Column(String(255), nullable=True)
    meeting_manually_started = Column(Boolean, nullable=False, default=False)
    meeting_started_at = Column(DateTime, nullable=True)

    # Physical location
    location_address = Column(String(255), nullable=True)
    location_city = Column(String(120), nullable=True, index=True)
    location_country = Column(String(120), nullable=True)

    tags = Column(JSON, nullable=False, default=list)
    cover_image_url = Column(String(500), nullable=True)
    cover_image_public_id = Column(String(255), nullable=True)

    # Pricing and capacity
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    max_attendees = Column(Integer, nullable=False, default=100)
    minimum_attendees = Column(Integer, nullable=False, default=0)

    visibility_status = Column(String(10), nullable=False, default=VisibilityStatus.PUBLIC.value, index=True)

    # Organizer (users live in the identity provider)
    organizer_id = Column(Integer, nullable=False, index=True)
    organizer_name = Column(String(255), nullable=True)
    organizer_email = Column(String(255), nullable=True)

    # Engagement
    view_count = Column(Integer, nullable=False, default=0)
    like_count = Column(Integer, nullable=False, default=0)
    share_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    access_grants = relationship(
        "EventAccessGrant", back_populates="event",
        cascade="all, delete-orphan", lazy="selectin"
    )
    ticket_tiers = relationship(
        "TicketTier", back_populates="event",
        cascade="all, delete-orphan", lazy="selectin"
    )
    likes = relationship("EventLike", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        CheckConstraint("max_attendees > 0", name="check_event_max_attendees_positive"),
        Index("idx_event_organizer_status", "organizer_id", "status"),
        Index("idx_event_visibility_date", "visibility_status", "date"),
    )

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', visibility='{self.visibility_status}')>"

    @property
    def restricted_to(self) -> list:
        return [grant.email for grant in self.access_grants]

    @property
    def visibility(self) -> dict:
        return {"status": self.visibility_status, "restricted_to": self.restricted_to}

    @property
    def is_free(self) -> bool:
        """Free when priced 0, or when every ticket tier is priced 0."""
        if self.price is not None and float(self.price) == 0:
            return True
        if self.ticket_tiers:
            return all(float(tier.price or 0) == 0 for tier in self.ticket_tiers)
        return False

    @property
    def is_upcoming(self) -> bool:
        return self.date is not None and self.date > utcnow() and self.status != EventStatus.CANCELLED.value

    def to_dict(self) -> dict:
        """Serializable representation used for responses and caching."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "short_description": self.short_description,
            "category": self.category,
            "status": self.status,
            "date": isoformat(self.date),
            "end_date": isoformat(self.end_date),
            "duration": self.duration,
            "registration_deadline": isoformat(self.registration_deadline),
            "is_virtual": self.is_virtual,
            "streaming_platform": self.streaming_platform,
            "meeting_link": self.meeting_link,
            "room_name": self.room_name,
            "meeting_manually_started": self.meeting_manually_started,
            "location": None if self.is_virtual else {
                "address": self.location_address,
                "city": self.location_city,
                "country": self.location_country,
            },
            "tags": list(self.tags or []),
            "cover_image_url": self.cover_image_url,
            "price": float(self.price or 0),
            "currency": self.currency,
            "max_attendees": self.max_attendees,
            "minimum_attendees": self.minimum_attendees,
            "visibility": self.visibility,
            "ticket_tiers": [tier.to_dict() for tier in self.ticket_tiers],
            "organizer": {
                "id": self.organizer_id,
                "name": self.organizer_name,
                "email": self.organizer_email,
            },
            "view_count": self.view_count,
            "like_count": self.like_count,
            "share_count": self.share_count,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class EventAccessGrant(Base):
    """Email allowed to read a private event."""
    __tablename__ = "event_access_grants"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)

    event = relationship("Event", back_populates="access_grants")

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_event_access_grant"),
    )


class TicketTier(Base):
    """Named ticket type offered by an event."""
    __tablename__ = "ticket_tiers"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=True)

    event = relationship("Event", back_populates="ticket_tiers")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_tier_price_non_negative"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price or 0),
            "quantity": self.quantity,
        }


class EventLike(Base):
    __tablename__ = "event_likes"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_like_user"),
    )

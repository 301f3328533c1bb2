"""
Pydantic schemas for event operations.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..models.event import EventCategory, EventStatus, StreamingPlatform


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Datetimes are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class LocationSchema(BaseModel):
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    country: Optional[str] = Field(None, max_length=120)


class VisibilitySchema(BaseModel):
    """Object form of the visibility descriptor."""
    status: str = Field("public", description="public or private")
    restricted_to: List[str] = Field(default_factory=list, alias="restrictedTo")

    class Config:
        populate_by_name = True


class TicketTierSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal = Field(Decimal("0"), ge=0)
    quantity: Optional[int] = Field(None, gt=0)


class EventBase(BaseModel):
    """Fields shared by create and update."""
    title: str = Field(..., min_length=1, max_length=255, description="Event title")
    description: str = Field(..., min_length=1, description="Event description")
    short_description: Optional[str] = Field(None, max_length=500)
    category: EventCategory = Field(EventCategory.OTHER, description="Event category")
    date: datetime = Field(..., description="Start date and time (UTC)")
    end_date: Optional[datetime] = None
    duration: int = Field(120, gt=0, description="Duration in minutes")
    registration_deadline: Optional[datetime] = None
    is_virtual: bool = False
    streaming_platform: Optional[StreamingPlatform] = None
    meeting_link: Optional[str] = Field(None, max_length=500)
    location: Optional[LocationSchema] = None
    tags: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = Field(None, max_length=500)
    cover_image_public_id: Optional[str] = Field(None, max_length=255)
    price: Decimal = Field(Decimal("0"), ge=0, description="Base ticket price")
    currency: str = Field("USD", min_length=3, max_length=3)
    max_attendees: int = Field(100, gt=0)
    minimum_attendees: int = Field(0, ge=0)
    visibility: Union[str, VisibilitySchema] = "public"
    ticket_tiers: List[TicketTierSchema] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()

    @field_validator("date", "end_date", "registration_deadline")
    @classmethod
    def strip_timezone(cls, v):
        return naive_utc(v)


class EventCreate(EventBase):
    status: EventStatus = EventStatus.UPCOMING


class EventUpdate(BaseModel):
    """Partial update; only fields sent are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    short_description: Optional[str] = Field(None, max_length=500)
    category: Optional[EventCategory] = None
    status: Optional[EventStatus] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0)
    registration_deadline: Optional[datetime] = None
    is_virtual: Optional[bool] = None
    streaming_platform: Optional[StreamingPlatform] = None
    meeting_link: Optional[str] = Field(None, max_length=500)
    location: Optional[LocationSchema] = None
    tags: Optional[List[str]] = None
    cover_image_url: Optional[str] = Field(None, max_length=500)
    cover_image_public_id: Optional[str] = Field(None, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    max_attendees: Optional[int] = Field(None, gt=0)
    minimum_attendees: Optional[int] = Field(None, ge=0)
    visibility: Optional[Union[str, VisibilitySchema]] = None
    ticket_tiers: Optional[List[TicketTierSchema]] = None

    @field_validator("date", "end_date", "registration_deadline")
    @classmethod
    def strip_timezone(cls, v):
        return naive_utc(v)


class EventDeleteRequest(BaseModel):
    id: Any = None


class EventStatusUpdate(BaseModel):
    event_id: Optional[int] = None
    status: Optional[str] = None


class EventCreatedResponse(BaseModel):
    message: str
    event: Dict[str, Any]
    links: Dict[str, str]


class PaginationSchema(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class EventListResponse(BaseModel):
    events: List[Dict[str, Any]]
    pagination: PaginationSchema


def event_payload(schema: BaseModel, partial: bool = False) -> Dict[str, Any]:
    """
    Dump a create/update schema into the plain dict the service expects.
    Enums become their values and nested models become dicts.
    """
    data = schema.model_dump(exclude_unset=partial, by_alias=False)
    for key in ("category", "status", "streaming_platform"):
        if data.get(key) is not None and hasattr(data[key], "value"):
            data[key] = data[key].value
    if data.get("ticket_tiers") is not None:
        data["ticket_tiers"] = [dict(tier) for tier in data["ticket_tiers"]]
    return data

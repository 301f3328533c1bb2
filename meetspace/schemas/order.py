"""
Pydantic schemas for orders and tickets.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class RSVPCreate(BaseModel):
    """Free-event registration request. Email format and order type are
    checked by the order service so failures carry their error codes."""
    event_id: int = Field(..., gt=0, description="Event to register for")
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=40)
    order_type: str = Field(..., description="FREE_VIRTUAL_EVENT_RSVP or FREE_LOCATION_EVENT_RSVP")
    quantity: int = Field(1, description="Tickets for location events, clamped to 1..10")

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be blank")
        return v.strip()


class RSVPResponse(BaseModel):
    message: str
    order_id: int
    already_registered: bool = False
    tickets: List[Dict[str, Any]] = []


class TicketListResponse(BaseModel):
    order_id: int
    tickets: List[Dict[str, Any]]
    count: int

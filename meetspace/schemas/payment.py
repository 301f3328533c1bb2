"""
Pydantic schemas for payment initiation and lookups.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PaymentTicket(BaseModel):
    ticket_id: Optional[str] = Field(None, description="Ticket tier identifier")
    name: Optional[str] = Field(None, max_length=120)
    quantity: int = Field(..., description="Number of tickets of this type")
    price: Decimal = Field(..., description="Unit price")


class PaymentCustomization(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class PaymentInitRequest(BaseModel):
    """
    Checkout request. Business validation (email, amount, currency, URLs,
    tickets) happens in the payment service.
    """
    event_id: int = Field(..., gt=0)
    email: str
    amount: Decimal
    currency: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    callback_url: str
    return_url: Optional[str] = None
    tickets: List[PaymentTicket] = Field(default_factory=list)
    customization: Optional[PaymentCustomization] = None
    metadata: Optional[Dict[str, Any]] = None


class PaymentInitResponse(BaseModel):
    message: str
    checkout_url: Optional[str]
    order_id: int
    tx_ref: str
    chapa_response_status: Optional[str] = None

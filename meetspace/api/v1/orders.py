"""
Order API endpoints for Meetspace.
Free RSVPs, order details and tickets.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...core.exceptions import MeetspaceError
from ...db.database import get_db
from ...db.redis_client import CacheManager
from ...schemas.order import RSVPCreate, RSVPResponse, TicketListResponse
from ...services.order_service import order_service
from ..dependencies import get_cache_manager, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/rsvp", response_model=RSVPResponse, status_code=status.HTTP_201_CREATED)
async def create_rsvp(
    rsvp_data: RSVPCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """
    Register for a free event.

    Returns 201 with the new order, or 200 with the existing order when the
    user is already registered for a virtual event.
    """
    try:
        order, created, tickets = await order_service.create_rsvp(db, rsvp_data.model_dump(), current_user)

        if not created:
            return JSONResponse(
                status_code=status.HTTP_200_OK,
                content=RSVPResponse(
                    message="You are already registered for this event",
                    order_id=order.id,
                    already_registered=True,
                ).model_dump()
            )

        db.commit()
        if cache is not None:
            await cache.invalidate_event_cache(order.event_id)

        return RSVPResponse(
            message="Registration successful",
            order_id=order.id,
            tickets=[ticket.to_dict() for ticket in tickets],
        )

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"RSVP failed for event {rsvp_data.event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to register for event: {str(e)}"
        )


@router.get("/{order_id}")
async def get_order(
    order_id: int = Path(..., gt=0, description="Order ID"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Order details for its owner."""
    try:
        return await order_service.get_order_details(db, order_id, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to get order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get order: {str(e)}"
        )


@router.get("/{order_id}/tickets", response_model=TicketListResponse)
async def get_order_tickets(
    order_id: int = Path(..., gt=0, description="Order ID"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        tickets = await order_service.get_order_tickets(db, order_id, current_user)
        return TicketListResponse(
            order_id=order_id,
            tickets=[ticket.to_dict() for ticket in tickets],
            count=len(tickets),
        )

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to get tickets for order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get tickets: {str(e)}"
        )

"""
Event API endpoints for Meetspace.
Listing, management and engagement for events.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from ...core.exceptions import MeetspaceError
from ...db.database import get_db
from ...db.redis_client import CacheManager
from ...schemas.event import (
    EventCreate, EventCreatedResponse, EventDeleteRequest, EventListResponse,
    EventStatusUpdate, EventUpdate, event_payload
)
from ...services.event_service import event_service
from ..dependencies import get_cache_manager, get_current_user, get_optional_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListResponse)
async def list_events(
    page: int = Query(1, description="Page number"),
    per_page: int = Query(12, description="Items per page (1-100)"),
    search: Optional[str] = Query(None, description="Search title, description, category and location"),
    categories: Optional[str] = Query(None, description="Comma-separated categories"),
    locations: Optional[str] = Query(None, description="Comma-separated cities; 'online' for virtual"),
    price_ranges: Optional[str] = Query(None, description="free, paid, under-100, 100-500, over-500"),
    dates: Optional[str] = Query(None, description="today, tomorrow, this-week, this-weekend, next-week, next-month"),
    hide_expired: bool = Query(True, description="Hide events that have ended"),
    status_filter: Optional[str] = Query(None, alias="status"),
    sort_by: str = Query("date", description="date, price, attendees or created_at"),
    sort_order: str = Query("desc", description="asc or desc"),
    view_mode: Optional[str] = Query(None, description="'organizer' for the caller's own events"),
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """
    List events visible to the caller with filters and pagination.
    """
    try:
        params = {
            "page": page,
            "per_page": per_page,
            "search": search,
            "categories": categories,
            "locations": locations,
            "price_ranges": price_ranges,
            "dates": dates,
            "hide_expired": hide_expired,
            "status": status_filter,
            "sort_by": sort_by,
            "sort_order": sort_order,
            "view_mode": view_mode,
        }
        return await event_service.list_events(db, cache, params, current_user)

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list events: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list events: {str(e)}"
        )


@router.post("", response_model=EventCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """
    Create a new event for the authenticated organizer.
    """
    try:
        event = await event_service.create_event(db, cache, event_payload(event_data), current_user)

        return EventCreatedResponse(
            message="Event created successfully",
            event=event.to_dict(),
            links={
                "self": f"/api/v1/events/{event.id}",
                "attendees": f"/api/v1/events/{event.id}/attendees",
            }
        )

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create event: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create event: {str(e)}"
        )


@router.post("/delete")
async def delete_event(
    request_data: EventDeleteRequest,
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """Delete an event with no completed registrations."""
    try:
        return await event_service.delete_event(db, cache, request_data.id, current_user)

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete event {request_data.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete event: {str(e)}"
        )


@router.get("/status")
async def get_events_by_status(
    status_filter: Optional[str] = Query(None, alias="status"),
    ids: Optional[str] = Query(None, description="Comma-separated event ids"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        events = await event_service.get_events_by_status(db, current_user, status=status_filter, ids=ids)
        return {"events": events, "status": status_filter}

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch events by status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch events by status: {str(e)}"
        )


@router.put("/status")
async def update_event_status(
    status_data: EventStatusUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """
    Change an event's lifecycle status. Organizer only.
    """
    try:
        result = await event_service.update_status(
            db, cache, status_data.event_id, status_data.status, current_user
        )
        return {"message": "Event status updated successfully", **result}

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to update event status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update event status: {str(e)}"
        )


@router.get("/{event_id}")
async def get_event(
    event_id: int = Path(..., gt=0, description="Event ID"),
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """
    Get event details with registration state and related events.
    """
    try:
        return await event_service.get_event_details(db, cache, event_id, current_user)

    except MeetspaceError:
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get event: {str(e)}"
        )


@router.put("/{event_id}")
async def update_event(
    event_data: EventUpdate,
    event_id: int = Path(..., gt=0, description="Event ID"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    try:
        event = await event_service.update_event(
            db, cache, event_id, event_payload(event_data, partial=True), current_user
        )
        return {"message": "Event updated successfully", "event": event.to_dict()}

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to update event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update event: {str(e)}"
        )


@router.post("/{event_id}/start")
async def start_meeting(
    event_id: int = Path(..., gt=0),
    current_user: Dict[str, Any] = Depends(get_current_user),
    cache: Optional[CacheManager] = Depends(get_cache_manager),
    db: Session = Depends(get_db)
):
    """Mark the event's meeting as started by the organizer."""
    try:
        return await event_service.start_meeting(db, cache, event_id, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to start meeting for event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start meeting: {str(e)}"
        )


@router.get("/{event_id}/attendees")
async def get_attendees(
    event_id: int = Path(..., gt=0),
    current_user: Optional[Dict[str, Any]] = Depends(get_optional_current_user),
    db: Session = Depends(get_db)
):
    try:
        return await event_service.get_attendee_count(db, event_id, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to count attendees for event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get attendees: {str(e)}"
        )


@router.post("/{event_id}/like")
async def like_event(
    event_id: int = Path(..., gt=0),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return await event_service.like_event(db, event_id, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to like event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to like event: {str(e)}"
        )


@router.delete("/{event_id}/like")
async def unlike_event(
    event_id: int = Path(..., gt=0),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return await event_service.unlike_event(db, event_id, current_user)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to unlike event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to unlike event: {str(e)}"
        )


@router.post("/{event_id}/share")
async def share_event(
    event_id: int = Path(..., gt=0),
    db: Session = Depends(get_db)
):
    try:
        return await event_service.share_event(db, event_id)

    except MeetspaceError:
        raise
    except Exception as e:
        logger.error(f"Failed to record share for event {event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to share event: {str(e)}"
        )

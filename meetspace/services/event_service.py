"""
Event Service for Meetspace.
Business logic for event listing, management and engagement.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ..core.exceptions import (
    AuthenticationRequired, ConflictError, PermissionDenied, ResourceNotFound, ValidationFailed
)
from ..db.redis_client import CacheManager
from ..db.repositories import EventRepository, OrderRepository
from ..models.base import utcnow
from ..models.event import Event, EventStatus, StreamingPlatform, VisibilityStatus
from ..models.order import Order, OrderStatus
from .jitsi_service import jitsi_service
from .media_service import media_service
from .registration import is_registered
from .subscription_service import subscription_service
from .visibility import can_view, is_owner, list_filter, normalize_visibility, viewer_id

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 12
MAX_PER_PAGE = 100
RELATED_LIMIT = 3

SORT_FIELDS = ("date", "price", "attendees", "created_at")
PRICE_RANGES = ("free", "paid", "under-100", "100-500", "over-500")
DATE_RANGES = ("today", "tomorrow", "this-week", "this-weekend", "next-week", "next-month")
VALID_STATUSES = tuple(status.value for status in EventStatus)

# Columns a create/update payload may set directly
EVENT_FIELDS = (
    "title", "description", "short_description", "category", "status",
    "date", "end_date", "duration", "registration_deadline",
    "is_virtual", "streaming_platform", "meeting_link",
    "tags", "cover_image_url", "cover_image_public_id",
    "price", "currency", "max_attendees", "minimum_attendees",
)


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _month_start(year: int, month: int) -> datetime:
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1)


def date_range(option: str, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """
    Half-open [start, end) window for a relative date filter.
    Weeks start on Monday; the weekend is Saturday and Sunday.
    """
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=today.weekday())
    week_end = week_start + timedelta(days=7)

    if option == "today":
        return today, today + timedelta(days=1)
    if option == "tomorrow":
        return today + timedelta(days=1), today + timedelta(days=2)
    if option == "this-week":
        return week_start, week_end
    if option == "this-weekend":
        return week_start + timedelta(days=5), week_end
    if option == "next-week":
        return week_end, week_end + timedelta(days=7)
    if option == "next-month":
        return _month_start(today.year, today.month + 1), _month_start(today.year, today.month + 2)
    return None


def price_condition(option: str):
    if option == "free":
        return or_(Event.price == 0, Event.price.is_(None))
    if option == "paid":
        return Event.price > 0
    if option == "under-100":
        return and_(Event.price > 0, Event.price < 100)
    if option == "100-500":
        return and_(Event.price >= 100, Event.price <= 500)
    if option == "over-500":
        return Event.price > 500
    return None


def attendee_count_expression():
    return (
        select(func.count(Order.id))
        .where(Order.event_id == Event.id, Order.status == OrderStatus.COMPLETED.value)
        .correlate(Event)
        .scalar_subquery()
    )


def normalize_list_filters(params: Dict[str, Any]) -> Dict[str, Any]:
    """Clamp paging and canonicalize list query parameters."""
    try:
        page = max(1, int(params.get("page") or 1))
    except (TypeError, ValueError):
        page = 1
    try:
        per_page = max(1, min(MAX_PER_PAGE, int(params.get("per_page") or DEFAULT_PER_PAGE)))
    except (TypeError, ValueError):
        per_page = DEFAULT_PER_PAGE

    sort_by = params.get("sort_by") or "date"
    if sort_by not in SORT_FIELDS:
        sort_by = "date"

    hide_expired = params.get("hide_expired")
    return {
        "page": page,
        "per_page": per_page,
        "search": (params.get("search") or "").strip() or None,
        "categories": sorted(c.lower() for c in _split(params.get("categories"))),
        "locations": sorted(loc.lower() for loc in _split(params.get("locations"))),
        "price_ranges": sorted(p for p in _split(params.get("price_ranges")) if p in PRICE_RANGES),
        "dates": sorted(d for d in _split(params.get("dates")) if d in DATE_RANGES),
        "hide_expired": True if hide_expired is None else bool(hide_expired),
        "status": params.get("status") or None,
        "sort_by": sort_by,
        "sort_order": "asc" if params.get("sort_order") == "asc" else "desc",
        "view_mode": params.get("view_mode") or None,
    }


def build_list_predicates(filters: Dict[str, Any], now: datetime) -> List[Any]:
    """Translate normalized list filters into SQL predicates (visibility excluded)."""
    predicates = []

    if filters["hide_expired"]:
        predicates.append(or_(
            and_(Event.end_date.isnot(None), Event.end_date >= now),
            and_(Event.end_date.is_(None), Event.date >= now)
        ))

    if filters["search"]:
        pattern = f"%{filters['search'].lower()}%"
        predicates.append(or_(
            func.lower(Event.title).like(pattern),
            func.lower(Event.description).like(pattern),
            func.lower(Event.category).like(pattern),
            func.lower(Event.location_city).like(pattern),
            func.lower(Event.location_address).like(pattern),
        ))

    if filters["categories"]:
        predicates.append(func.lower(Event.category).in_(filters["categories"]))

    if filters["locations"]:
        cities = [loc for loc in filters["locations"] if loc != "online"]
        terms = []
        if cities:
            terms.append(and_(Event.is_virtual.is_(False), func.lower(Event.location_city).in_(cities)))
        if "online" in filters["locations"]:
            terms.append(Event.is_virtual.is_(True))
        predicates.append(or_(*terms))

    if filters["price_ranges"]:
        predicates.append(or_(*[price_condition(option) for option in filters["price_ranges"]]))

    if filters["dates"]:
        windows = [date_range(option, now) for option in filters["dates"]]
        predicates.append(or_(*[
            and_(Event.date >= start, Event.date < end) for start, end in windows if start
        ]))

    if filters["status"]:
        predicates.append(Event.status == filters["status"])

    return predicates


def build_order_by(filters: Dict[str, Any]) -> List[Any]:
    column = {
        "date": Event.date,
        "price": Event.price,
        "attendees": attendee_count_expression(),
        "created_at": Event.created_at,
    }[filters["sort_by"]]
    if filters["sort_order"] == "asc":
        return [column.asc(), Event.id.asc()]
    return [column.desc(), Event.id.desc()]


class EventService:
    """
    Event operations. Route handlers pass the request session, the cache
    manager (None when Redis is unavailable) and the caller's token payload.
    """

    async def _invalidate(
        self, session: Session, cache: Optional[CacheManager], event_id: Optional[int] = None
    ):
        """Commit the mutation before dropping cached reads."""
        session.commit()
        if cache is not None:
            await cache.invalidate_event_cache(event_id)

    def _get_event(self, session: Session, event_id: int) -> Event:
        event = EventRepository(session).get_by_id(event_id)
        if event is None:
            raise ResourceNotFound("Event not found", code="NOT_FOUND")
        return event

    def _get_owned_event(self, session: Session, event_id: int, user: Dict[str, Any]) -> Event:
        event = self._get_event(session, event_id)
        if not is_owner(event, user):
            logger.warning(f"User {viewer_id(user)} attempted to modify event {event_id}")
            raise PermissionDenied("You do not have permission to modify this event")
        return event

    def _split_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Map request fields onto Event columns."""
        data = {key: payload[key] for key in EVENT_FIELDS if key in payload}

        if "location" in payload:
            location = payload.get("location") or {}
            data["location_address"] = location.get("address")
            data["location_city"] = location.get("city")
            data["location_country"] = location.get("country")

        if "category" in data and data["category"]:
            data["category"] = data["category"].lower()

        return data

    def _validate_event_data(self, data: Dict[str, Any], event: Optional[Event] = None):
        def current(key):
            if key in data:
                return data[key]
            return getattr(event, key) if event is not None else None

        start = current("date")
        end = current("end_date")
        if start is not None and end is not None and end < start:
            raise ValidationFailed("End date must be after the start date", code="INVALID_DATES")

        if not current("is_virtual") and not (current("location_city") or current("location_address")):
            raise ValidationFailed("In-person events need a location", code="LOCATION_REQUIRED")

        status = current("status")
        if status is not None and status not in VALID_STATUSES:
            raise ValidationFailed(
                f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}",
                code="INVALID_STATUS"
            )

    async def list_events(
        self,
        session: Session,
        cache: Optional[CacheManager],
        params: Dict[str, Any],
        user: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Paginated event list filtered by query params and visibility.

        Returns:
            Dict with ``events`` and ``pagination``
        """
        filters = normalize_list_filters(params)
        organizer_view = filters["view_mode"] == "organizer"
        if organizer_view and viewer_id(user) is None:
            raise AuthenticationRequired("Sign in to view your events")

        cacheable = cache is not None and user is None and not organizer_view
        if cacheable:
            cached = await cache.get_cached_events_list(filters)
            if cached is not None:
                logger.debug("Events list served from cache")
                return cached

        predicates = [list_filter(user, organizer_view=organizer_view)]
        predicates.extend(build_list_predicates(filters, utcnow()))

        skip = (filters["page"] - 1) * filters["per_page"]
        events, total = EventRepository(session).list(
            predicates, build_order_by(filters), skip=skip, limit=filters["per_page"]
        )

        result = {
            "events": [event.to_dict() for event in events],
            "pagination": {
                "current_page": filters["page"],
                "total_pages": math.ceil(total / filters["per_page"]) if total else 0,
                "total_items": total,
                "items_per_page": filters["per_page"],
            },
        }

        if cacheable:
            await cache.cache_events_list(filters, result)

        return result

    async def create_event(
        self,
        session: Session,
        cache: Optional[CacheManager],
        payload: Dict[str, Any],
        user: Optional[Dict[str, Any]]
    ) -> Event:
        """
        Create an event for the authenticated organizer.

        Raises:
            AuthenticationRequired: anonymous caller
            PermissionDenied: plan quota reached
            ValidationFailed: inconsistent event data
        """
        user_id = viewer_id(user)
        if user_id is None:
            raise AuthenticationRequired("You must be signed in to create events")

        subscription_service.assert_can_create_event(session, user_id)

        data = self._split_payload(payload)
        self._validate_event_data(data)
        visibility_status, restricted_to = normalize_visibility(payload.get("visibility"))

        data.update({
            "visibility_status": visibility_status,
            "organizer_id": user_id,
            "organizer_name": user.get("name"),
            "organizer_email": user.get("email"),
        })
        if data.get("is_virtual") and not data.get("streaming_platform"):
            data["streaming_platform"] = StreamingPlatform.JITSI.value

        event = EventRepository(session).create(
            data,
            restricted_to=restricted_to,
            ticket_tiers=payload.get("ticket_tiers") or []
        )

        if event.is_virtual and event.streaming_platform == StreamingPlatform.JITSI.value:
            await jitsi_service.assign_room(event)
            session.flush()

        await self._invalidate(session, cache, event.id)
        logger.info(f"Event {event.id} created by user {user_id}")
        return event

    def _related_events(self, session: Session, event: Event) -> Dict[str, List[dict]]:
        repository = EventRepository(session)
        now = utcnow()
        public_upcoming = [
            Event.visibility_status == VisibilityStatus.PUBLIC.value,
            Event.date >= now,
            Event.status != EventStatus.CANCELLED.value,
            Event.id != event.id,
        ]

        related, _ = repository.list(
            public_upcoming + [Event.category == event.category],
            [Event.date.asc()],
            limit=RELATED_LIMIT
        )
        by_organizer, _ = repository.list(
            public_upcoming + [Event.organizer_id == event.organizer_id],
            [Event.date.asc()],
            limit=RELATED_LIMIT
        )
        return {
            "related_events": [item.to_dict() for item in related],
            "organizer_events": [item.to_dict() for item in by_organizer],
        }

    async def get_event_details(
        self,
        session: Session,
        cache: Optional[CacheManager],
        event_id: int,
        user: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Event detail with viewer-specific flags and related events.

        Raises:
            ResourceNotFound: unknown event
            PermissionDenied: private event the viewer may not see
        """
        event = self._get_event(session, event_id)
        if not can_view(event, user):
            raise PermissionDenied("You do not have access to this event")

        owner = is_owner(event, user)
        if not owner:
            EventRepository(session).increment_counter(event.id, "view_count")
            session.refresh(event)

        related = await cache.get_cached_related_events(event.id) if cache is not None else None
        if related is None:
            related = self._related_events(session, event)
            if cache is not None:
                await cache.cache_related_events(event.id, related)

        details = event.to_dict()
        details.update({
            "is_owner": owner,
            "is_registered": is_registered(session, event, user),
            "related_events": related["related_events"],
            "organizer_events": related["organizer_events"],
        })
        return details

    async def update_event(
        self,
        session: Session,
        cache: Optional[CacheManager],
        event_id: int,
        payload: Dict[str, Any],
        user: Dict[str, Any]
    ) -> Event:
        event = self._get_owned_event(session, event_id, user)
        repository = EventRepository(session)

        data = self._split_payload(payload)
        self._validate_event_data(data, event)

        if "visibility" in payload:
            data["visibility_status"], restricted_to = normalize_visibility(payload["visibility"])
            repository.replace_access_grants(event, restricted_to)
        if "ticket_tiers" in payload:
            repository.replace_ticket_tiers(event, payload["ticket_tiers"] or [])

        repository.update(event, data)
        await self._invalidate(session, cache, event.id)
        logger.info(f"Event {event.id} updated by user {viewer_id(user)}")
        return event

    async def delete_event(
        self,
        session: Session,
        cache: Optional[CacheManager],
        event_id: Any,
        user: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Delete an event that nobody has registered for.

        Raises:
            ValidationFailed: INVALID_ID, or HAS_ATTENDEES when completed
                orders exist
            AuthenticationRequired: anonymous caller
            ResourceNotFound: unknown event
            PermissionDenied: caller is not the organizer
        """
        if isinstance(event_id, bool) or not isinstance(event_id, int) or event_id <= 0:
            raise ValidationFailed("A valid event id is required", code="INVALID_ID")
        if viewer_id(user) is None:
            raise AuthenticationRequired("You must be signed in to delete events")

        event = self._get_owned_event(session, event_id, user)

        attendees = OrderRepository(session).count_completed_for_event(event.id)
        if attendees > 0:
            raise ValidationFailed(
                "Cannot delete an event with attendees. Please cancel the event instead.",
                code="HAS_ATTENDEES",
                details={
                    "suggestion": "Update the event status to 'cancelled' instead of deleting it",
                    "attendees": attendees,
                }
            )

        public_id = event.cover_image_public_id
        dropped = OrderRepository(session).delete_for_event(event.id)
        if dropped:
            logger.info(f"Removed {dropped} unfinished order(s) of event {event_id}")
        EventRepository(session).delete(event)

        if public_id:
            try:
                await media_service.delete_image(public_id)
            except Exception as e:
                logger.error(f"Failed to delete cover image {public_id} for event {event_id}: {e}")

        await self._invalidate(session, cache, event_id)
        logger.info(f"Event {event_id} deleted by user {viewer_id(user)}")
        return {"message": "Event deleted successfully", "code": "DELETED"}

    async def update_status(
        self,
        session: Session,
        cache: Optional[CacheManager],
        event_id: Optional[int],
        status: Optional[str],
        user: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not event_id or not status:
            raise ValidationFailed("event_id and status are required", code="MISSING_PARAMETERS")
        if status not in VALID_STATUSES:
            raise ValidationFailed(
                f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}",
                code="INVALID_STATUS"
            )

        event = self._get_owned_event(session, event_id, user)
        previous_status = event.status
        EventRepository(session).update(event, {"status": status})

        await self._invalidate(session, cache, event.id)
        logger.info(f"Event {event.id} status changed {previous_status} -> {status}")
        return {"event": event.to_dict(), "previous_status": previous_status}

    async def get_events_by_status(
        self,
        session: Session,
        user: Dict[str, Any],
        status: Optional[str] = None,
        ids: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Organizer's events by status, or the current status of specific ids."""
        predicates = [Event.organizer_id == viewer_id(user)]

        if ids:
            try:
                event_ids = [int(value) for value in _split(ids)]
            except ValueError:
                raise ValidationFailed("ids must be a comma-separated list of integers", code="INVALID_ID")
            predicates.append(Event.id.in_(event_ids))
        elif status:
            if status not in VALID_STATUSES:
                raise ValidationFailed(
                    f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}",
                    code="INVALID_STATUS"
                )
            predicates.append(Event.status == status)
        else:
            raise ValidationFailed("status or ids is required", code="MISSING_PARAMETERS")

        events, _ = EventRepository(session).list(predicates, [Event.date.asc()], limit=MAX_PER_PAGE)
        return [
            {
                "id": event.id,
                "title": event.title,
                "date": event.to_dict()["date"],
                "status": event.status,
                "category": event.category,
                "cover_image_url": event.cover_image_url,
            }
            for event in events
        ]

    async def start_meeting(
        self,
        session: Session,
        cache: Optional[CacheManager],
        event_id: int,
        user: Dict[str, Any]
    ) -> Dict[str, Any]:
        event = self._get_owned_event(session, event_id, user)

        if event.meeting_manually_started:
            return {"message": "Meeting was already started or no change needed.", "event": event.to_dict()}

        EventRepository(session).update(event, {
            "meeting_manually_started": True,
            "meeting_started_at": utcnow(),
        })
        await self._invalidate(session, cache, event.id)
        logger.info(f"Meeting for event {event.id} started by organizer")
        return {"message": "Meeting started successfully", "event": event.to_dict()}

    async def get_attendee_count(
        self,
        session: Session,
        event_id: int,
        user: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Completed-order count; private events only to their organizer."""
        event = self._get_event(session, event_id)
        if event.visibility_status == VisibilityStatus.PRIVATE.value and not is_owner(event, user):
            raise PermissionDenied("You do not have access to this event's attendees")

        return {
            "event_id": event.id,
            "attendee_count": OrderRepository(session).count_completed_for_event(event.id),
            "max_attendees": event.max_attendees,
        }

    async def like_event(self, session: Session, event_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        event = self._get_event(session, event_id)
        if not can_view(event, user):
            raise PermissionDenied("You do not have access to this event")

        repository = EventRepository(session)
        user_id = viewer_id(user)
        if repository.get_like(event.id, user_id) is not None:
            raise ConflictError("Event already liked", code="ALREADY_LIKED")

        repository.add_like(event.id, user_id)
        repository.increment_counter(event.id, "like_count")
        session.refresh(event)
        return {"message": "Event liked successfully.", "like_count": event.like_count}

    async def unlike_event(self, session: Session, event_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        event = self._get_event(session, event_id)
        repository = EventRepository(session)

        like = repository.get_like(event.id, viewer_id(user))
        if like is None:
            raise ResourceNotFound("Event is not liked", code="NOT_LIKED")

        repository.remove_like(like)
        repository.increment_counter(event.id, "like_count", -1)
        session.refresh(event)
        return {"message": "Event unliked successfully.", "like_count": event.like_count}

    async def share_event(self, session: Session, event_id: int) -> Dict[str, Any]:
        repository = EventRepository(session)
        if repository.increment_counter(event_id, "share_count") == 0:
            raise ResourceNotFound("Event not found", code="NOT_FOUND")
        event = repository.get_by_id(event_id)
        session.refresh(event)
        return {"message": "Share recorded", "share_count": event.share_count}


# Global event service instance
event_service = EventService()

"""
Event visibility resolution.

Events are stored with a normalized visibility: ``visibility_status`` is
either ``public`` or ``private`` and the allow-list lives in
``event_access_grants``. Incoming descriptors may still arrive in either of
the historical shapes (the bare string ``"public"`` or an object with
``status``/``restricted_to``); ``normalize_visibility`` folds them into the
stored shape at write time.

A public event is readable by everyone, including anonymous viewers, even
when it carries an allow-list. A private event is readable only by its
organizer and by viewers whose email is on the allow-list. Unknown stored
values are treated as public and logged.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, false, func, or_

from ..models.event import Event, EventAccessGrant, VisibilityStatus

logger = logging.getLogger(__name__)

Viewer = Optional[Dict[str, Any]]


def _clean_emails(emails: Iterable[Any]) -> List[str]:
    """Lower-case, strip and de-duplicate, preserving order."""
    cleaned: List[str] = []
    for email in emails or []:
        if not isinstance(email, str):
            continue
        value = email.strip().lower()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def normalize_visibility(raw: Any) -> Tuple[str, List[str]]:
    """
    Fold any accepted visibility descriptor into (status, restricted_to).

    Accepts None, the string forms "public"/"private", a dict with
    ``status`` and ``restricted_to`` (or ``restrictedTo``), or a pydantic
    model exposing the same attributes.
    """
    if raw is None:
        return VisibilityStatus.PUBLIC.value, []

    if hasattr(raw, "model_dump"):
        raw = raw.model_dump()

    if isinstance(raw, str):
        status = raw.strip().lower()
        restricted: List[str] = []
    elif isinstance(raw, dict):
        status = str(raw.get("status") or VisibilityStatus.PUBLIC.value).strip().lower()
        restricted = _clean_emails(raw.get("restricted_to") or raw.get("restrictedTo") or [])
    else:
        logger.warning(f"Unrecognized visibility descriptor {raw!r}, storing as public")
        return VisibilityStatus.PUBLIC.value, []

    if status == VisibilityStatus.PRIVATE.value:
        return VisibilityStatus.PRIVATE.value, restricted
    if status != VisibilityStatus.PUBLIC.value:
        logger.warning(f"Unknown visibility status '{status}', storing as public")
    return VisibilityStatus.PUBLIC.value, restricted


def viewer_email(viewer: Viewer) -> Optional[str]:
    if not viewer or not viewer.get("email"):
        return None
    return str(viewer["email"]).strip().lower()


def viewer_id(viewer: Viewer) -> Optional[int]:
    if not viewer or viewer.get("user_id") is None:
        return None
    return int(viewer["user_id"])


def is_owner(event: Event, viewer: Viewer) -> bool:
    uid = viewer_id(viewer)
    return uid is not None and event.organizer_id == uid


def can_view(event: Event, viewer: Viewer) -> bool:
    """
    Decide whether ``viewer`` may read ``event``.

    Args:
        event: Event to check
        viewer: Token payload of the caller, or None when anonymous

    Returns:
        True when the event is readable by the viewer
    """
    status = (event.visibility_status or "").lower()

    if status == VisibilityStatus.PUBLIC.value:
        return True

    if status != VisibilityStatus.PRIVATE.value:
        logger.warning(
            f"Event {event.id} has unknown visibility '{event.visibility_status}', treating as public"
        )
        return True

    if is_owner(event, viewer):
        return True

    email = viewer_email(viewer)
    if email is None:
        return False
    return email in _clean_emails(event.restricted_to)


def list_filter(viewer: Viewer, organizer_view: bool = False):
    """
    Build the SQL predicate selecting events the viewer may see in lists.

    In organizer view only ownership counts and visibility is ignored; an
    anonymous organizer view matches nothing.
    """
    uid = viewer_id(viewer)

    if organizer_view:
        if uid is None:
            return false()
        return Event.organizer_id == uid

    # Anything not explicitly private is listed, matching can_view's fail-open rule
    terms = [Event.visibility_status != VisibilityStatus.PRIVATE.value]

    if uid is not None:
        terms.append(Event.organizer_id == uid)

    email = viewer_email(viewer)
    if email is not None:
        terms.append(and_(
            Event.visibility_status == VisibilityStatus.PRIVATE.value,
            Event.access_grants.any(func.lower(EventAccessGrant.email) == email)
        ))

    return or_(*terms)

"""
Jitsi as a Service (8x8) helpers: meeting rooms and participant tokens.
"""

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from ..core.config import config
from ..core.exceptions import ConfigurationError, ValidationFailed

logger = logging.getLogger(__name__)

JAAS_DOMAIN = "https://8x8.vc"
TOKEN_LIFETIME = timedelta(hours=3)
NOT_BEFORE_SKEW = timedelta(seconds=10)


def build_room_name(event_id: int, timestamp_ms: Optional[int] = None) -> str:
    """``event-{id}-{ms}`` with anything outside [A-Za-z0-9] replaced by '-'."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return re.sub(r"[^a-zA-Z0-9]", "-", f"event-{event_id}-{timestamp_ms}")


def build_meeting_link(app_id: str, room_name: str) -> str:
    return f"{JAAS_DOMAIN}/{app_id}/{room_name}"


class JitsiService:
    """
    Issues RS256-signed JaaS tokens and assigns meeting rooms to events.
    """

    async def assign_room(self, event) -> bool:
        """
        Give a virtual JITSI event its room and link.

        Returns:
            True when the event was updated, False when JaaS is not configured
        """
        jaas = await config.get_jaas_config()
        if not jaas["app_id"]:
            logger.warning(f"JAAS_APP_ID not configured, event {event.id} created without a meeting room")
            return False

        event.room_name = build_room_name(event.id)
        event.meeting_link = build_meeting_link(jaas["app_id"], event.room_name)
        logger.info(f"Assigned Jitsi room {event.room_name} to event {event.id}")
        return True

    async def generate_token(
        self,
        room: Optional[str],
        user: Dict[str, Any],
        moderator: bool = False,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create a participant token for ``room``.

        Args:
            room: Room name (required)
            user: Authenticated user payload
            moderator: Grant moderator and recording rights
            now: Issue time, defaults to the current time

        Returns:
            Dict with token, room, app_id and domain

        Raises:
            ValidationFailed: room missing
            ConfigurationError: JaaS credentials missing
        """
        if not room:
            raise ValidationFailed("Room name is required", code="MISSING_ROOM")

        jaas = await config.get_jaas_config()
        missing = [name for name, value in (
            ("JAAS_APP_ID", jaas["app_id"]),
            ("JAAS_API_KEY_ID", jaas["api_key_id"]),
            ("JAAS_PRIVATE_KEY", jaas["private_key"]),
        ) if not value]
        if missing:
            logger.error(f"Jitsi token requested but configuration is missing: {', '.join(missing)}")
            raise ConfigurationError(
                "Video conferencing is not configured",
                code="JAAS_CONFIG_MISSING",
                details={"missing": missing}
            )

        now = now or datetime.now(timezone.utc)
        claims = {
            "aud": "jitsi",
            "iss": "chat",
            "sub": jaas["app_id"],
            "room": room,
            "exp": int((now + TOKEN_LIFETIME).timestamp()),
            "nbf": int((now - NOT_BEFORE_SKEW).timestamp()),
            "context": {
                "user": {
                    "id": str(user.get("user_id")),
                    "name": user.get("name") or user.get("email") or "Guest",
                    "avatar": user.get("avatar") or "",
                    "email": user.get("email") or "",
                    "moderator": "true" if moderator else "false",
                },
                "features": {
                    "livestreaming": "true" if moderator else "false",
                    "recording": "true" if moderator else "false",
                    "transcription": "true",
                    "outbound-call": "false",
                },
            },
        }

        token = jwt.encode(
            claims,
            jaas["private_key"],
            algorithm="RS256",
            headers={"kid": jaas["api_key_id"]}
        )

        return {
            "token": token,
            "room": room,
            "app_id": jaas["app_id"],
            "domain": "8x8.vc",
            "moderator": moderator,
        }


# Global Jitsi service instance
jitsi_service = JitsiService()

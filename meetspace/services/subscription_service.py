"""
Subscription Service for Meetspace.
Enforces the organizer event-creation quota.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import PermissionDenied
from ..db.repositories import EventRepository, SubscriptionRepository
from ..models.subscription import Subscription, UNLIMITED_EVENTS

logger = logging.getLogger(__name__)

DEFAULT_PLAN_LIMITS = {
    "trial": 2,
    "basic": 10,
    "premium": 50,
}
FALLBACK_PLAN_LIMIT = 5
NO_SUBSCRIPTION_LIMIT = 2


def plan_limit(subscription: Subscription) -> Optional[int]:
    """
    Effective event limit for an active subscription; None means unlimited.
    """
    plan = subscription.plan
    if plan is not None and plan.max_events is not None:
        return None if plan.max_events == UNLIMITED_EVENTS else plan.max_events
    return DEFAULT_PLAN_LIMITS.get((subscription.plan_name or "").lower(), FALLBACK_PLAN_LIMIT)


class SubscriptionService:
    """
    Plan lookups and quota decisions for organizers.
    """

    def get_quota(self, session: Session, user_id: int) -> Dict[str, Any]:
        """
        Summarize the user's plan and how many more events they may create.

        Returns:
            Dict with subscription, plan_name, event_limit (None when
            unlimited), events_created, can_create and the denial code when
            creation is not allowed
        """
        subscriptions = SubscriptionRepository(session)
        current = subscriptions.get_current(user_id)
        events_created = EventRepository(session).count_by_organizer(user_id)

        if current is not None:
            limit = plan_limit(current)
            can_create = limit is None or events_created < limit
            return {
                "subscription": current.to_dict(),
                "plan_name": current.plan_name,
                "event_limit": limit,
                "events_created": events_created,
                "can_create": can_create,
                "reason": None if can_create else "EVENT_LIMIT_REACHED",
            }

        had_trial = any(
            (record.plan_name or "").lower() == "trial"
            for record in subscriptions.get_history(user_id)
        )
        can_create = events_created < NO_SUBSCRIPTION_LIMIT
        reason = None
        if not can_create:
            reason = "EXPIRED_TRIAL_LIMIT_REACHED" if had_trial else "NEW_USER_LIMIT_REACHED"

        return {
            "subscription": None,
            "plan_name": None,
            "event_limit": NO_SUBSCRIPTION_LIMIT,
            "events_created": events_created,
            "can_create": can_create,
            "reason": reason,
        }

    def assert_can_create_event(self, session: Session, user_id: int):
        """
        Raise PermissionDenied when the organizer is at their limit.

        The check fails open: if the lookup itself errors, creation proceeds.
        The lookup runs in a savepoint so a failed statement does not abort
        the caller's transaction.
        """
        try:
            with session.begin_nested():
                quota = self.get_quota(session, user_id)
        except Exception as e:
            logger.warning(f"Subscription check failed for user {user_id}, allowing creation: {e}")
            return

        if quota["can_create"]:
            return

        reason = quota["reason"]
        if reason == "EVENT_LIMIT_REACHED":
            message = (
                f"You have reached the maximum of {quota['event_limit']} events "
                f"allowed on the {quota['plan_name']} plan."
            )
        elif reason == "EXPIRED_TRIAL_LIMIT_REACHED":
            message = "Your trial has ended. Subscribe to a plan to create more events."
        else:
            message = f"Free accounts can create up to {NO_SUBSCRIPTION_LIMIT} events. Subscribe to create more."

        logger.info(f"User {user_id} denied event creation: {reason}")
        raise PermissionDenied(
            message,
            code=reason,
            details={
                "plan_name": quota["plan_name"],
                "event_limit": quota["event_limit"],
                "events_created": quota["events_created"],
            }
        )

    def list_plans(self, session: Session):
        return [plan.to_dict() for plan in SubscriptionRepository(session).list_plans()]


# Global subscription service instance
subscription_service = SubscriptionService()

"""
Tests for Subscription Service quota decisions.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from meetspace.core.exceptions import PermissionDenied
from meetspace.models.base import utcnow
from meetspace.models.subscription import Subscription, SubscriptionPlan, UNLIMITED_EVENTS
from meetspace.services.subscription_service import SubscriptionService, plan_limit


@pytest.fixture
def subscription_service():
    return SubscriptionService()


@pytest.fixture
def make_subscription(db_session):

    def _make_subscription(plan_name, user_id=1, days_left=30, plan=None, status="active"):
        subscription = Subscription(
            user_id=user_id,
            plan_name=plan_name,
            plan=plan,
            status=status,
            start_date=utcnow() - timedelta(days=1),
            end_date=utcnow() + timedelta(days=days_left),
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription

    return _make_subscription


class TestPlanLimit:

    @pytest.mark.parametrize("plan_name,expected", [
        ("trial", 2),
        ("Basic", 10),
        ("premium", 50),
        ("enterprise", 5),
    ])
    def test_default_limits(self, plan_name, expected):
        assert plan_limit(Subscription(plan_name=plan_name)) == expected

    def test_plan_row_overrides_defaults(self):
        plan = SubscriptionPlan(name="basic", max_events=25)

        assert plan_limit(Subscription(plan_name="basic", plan=plan)) == 25

    def test_unlimited_plan(self):
        plan = SubscriptionPlan(name="premium", max_events=UNLIMITED_EVENTS)

        assert plan_limit(Subscription(plan_name="premium", plan=plan)) is None


class TestQuota:
    """Test event creation quota."""

    def test_new_user_within_limit(self, db_session, subscription_service):
        quota = subscription_service.get_quota(db_session, 1)

        assert quota["subscription"] is None
        assert quota["event_limit"] == 2
        assert quota["can_create"] is True

    def test_new_user_at_limit(self, db_session, subscription_service, make_event):
        make_event()
        make_event()

        with pytest.raises(PermissionDenied) as exc_info:
            subscription_service.assert_can_create_event(db_session, 1)

        assert exc_info.value.code == "NEW_USER_LIMIT_REACHED"
        assert exc_info.value.details["events_created"] == 2

    def test_expired_trial_at_limit(self, db_session, subscription_service, make_event, make_subscription):
        make_subscription("trial", days_left=-1)
        make_event()
        make_event()

        with pytest.raises(PermissionDenied) as exc_info:
            subscription_service.assert_can_create_event(db_session, 1)

        assert exc_info.value.code == "EXPIRED_TRIAL_LIMIT_REACHED"

    def test_active_plan_limit(self, db_session, subscription_service, make_event, make_subscription):
        plan = SubscriptionPlan(name="starter", price=Decimal("100"), max_events=3)
        make_subscription("starter", plan=plan)
        for _ in range(3):
            make_event()

        with pytest.raises(PermissionDenied) as exc_info:
            subscription_service.assert_can_create_event(db_session, 1)

        assert exc_info.value.code == "EVENT_LIMIT_REACHED"
        assert exc_info.value.details["event_limit"] == 3

    def test_active_plan_allows_more(self, db_session, subscription_service, make_event, make_subscription):
        make_subscription("basic")
        for _ in range(3):
            make_event()

        quota = subscription_service.get_quota(db_session, 1)

        assert quota["plan_name"] == "basic"
        assert quota["event_limit"] == 10
        assert quota["can_create"] is True
        subscription_service.assert_can_create_event(db_session, 1)

    def test_unlimited_plan_never_blocks(self, db_session, subscription_service, make_event, make_subscription):
        plan = SubscriptionPlan(name="unlimited", max_events=UNLIMITED_EVENTS)
        make_subscription("unlimited", plan=plan)
        for _ in range(12):
            make_event()

        quota = subscription_service.get_quota(db_session, 1)

        assert quota["event_limit"] is None
        assert quota["can_create"] is True

    def test_lookup_failure_fails_open(self, db_session, subscription_service):
        with patch.object(subscription_service, "get_quota", side_effect=RuntimeError("db down")):
            subscription_service.assert_can_create_event(db_session, 1)

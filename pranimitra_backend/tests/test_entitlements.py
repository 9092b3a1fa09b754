from datetime import datetime, timedelta

from fastapi import HTTPException

from app.models.subscription import SubscriptionStatus
from app.services.entitlements import get_entitlement, require_active_subscription

from tests.base import DatabaseTestCase
from tests.factories import PlanFactory, SubscriptionFactory, UserFactory


class EntitlementTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.now = datetime(2024, 5, 20, 12, 0)
        self.user = UserFactory(monthly_calls_used=4, last_reset_date=datetime(2024, 5, 1))

    def subscribe(self, status=SubscriptionStatus.ACTIVE, plan=None, end_date=None, **kwargs):
        return SubscriptionFactory(
            user=self.user,
            plan=plan,
            status=status,
            start_date=self.now - timedelta(days=10),
            end_date=end_date,
            **kwargs
        )

    def test_user_without_subscription_is_free(self):
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertEqual(entitlement.status, "free")
        self.assertEqual(entitlement.call_limit, 10)
        self.assertEqual(entitlement.calls_used, 4)
        self.assertEqual(entitlement.calls_remaining, 6)
        self.assertTrue(entitlement.can_make_call)
        self.assertIsNone(entitlement.plan_id)

    def test_active_subscription(self):
        plan = PlanFactory(call_limit=50)
        self.subscribe(plan=plan, end_date=self.now + timedelta(days=20, hours=3))
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertTrue(entitlement.is_active)
        self.assertEqual(entitlement.plan_id, plan.id)
        self.assertEqual(entitlement.plan_name, plan.name)
        self.assertEqual(entitlement.days_remaining, 20)
        self.assertEqual(entitlement.call_limit, 50)
        self.assertEqual(entitlement.calls_remaining, 46)

    def test_unlimited_plan(self):
        plan = PlanFactory(call_limit=-1)
        self.subscribe(plan=plan, end_date=self.now + timedelta(days=5))
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertEqual(entitlement.call_limit, -1)
        self.assertIsNone(entitlement.calls_remaining)
        self.assertTrue(entitlement.can_make_call)

    def test_past_end_date_reads_as_expired(self):
        plan = PlanFactory()
        self.subscribe(plan=plan, end_date=self.now - timedelta(minutes=1))
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertEqual(entitlement.status, "expired")
        self.assertEqual(entitlement.call_limit, 0)
        self.assertFalse(entitlement.can_make_call)
        self.assertIsNone(entitlement.plan_id)

    def test_cancelled_subscription_has_no_calls(self):
        self.subscribe(status=SubscriptionStatus.CANCELLED, plan=PlanFactory(), end_date=self.now + timedelta(days=5))
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertEqual(entitlement.status, "cancelled")
        self.assertFalse(entitlement.can_make_call)

    def test_counters_from_previous_month_are_ignored(self):
        self.user.last_reset_date = datetime(2024, 4, 28)
        self.user.monthly_calls_used = 10
        entitlement = get_entitlement(self.user, now=self.now)

        self.assertEqual(entitlement.calls_used, 0)
        self.assertEqual(entitlement.calls_remaining, 10)

    def test_as_dict(self):
        data = get_entitlement(self.user, now=self.now).as_dict()
        self.assertEqual(set(data), {
            "status", "plan_id", "plan_name", "start_date", "end_date", "days_remaining",
            "call_limit", "calls_used", "calls_remaining", "can_make_call",
        })


class RequireActiveSubscriptionTestCase(DatabaseTestCase):

    def test_allows_user_with_calls_left(self):
        user = UserFactory(monthly_calls_used=0)
        self.assertTrue(require_active_subscription(user).can_make_call)

    def test_free_tier_exhausted(self):
        user = UserFactory(monthly_calls_used=10)
        with self.assertRaises(HTTPException) as ctx:
            require_active_subscription(user)

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.detail["code"], "FREE_LIMIT_EXCEEDED")
        self.assertEqual(ctx.exception.detail["entitlement"]["calls_remaining"], 0)

    def test_expired_subscription(self):
        user = UserFactory()
        SubscriptionFactory(
            user=user,
            plan=PlanFactory(),
            status=SubscriptionStatus.ACTIVE,
            end_date=datetime.utcnow() - timedelta(days=1),
        )
        with self.assertRaises(HTTPException) as ctx:
            require_active_subscription(user)

        self.assertEqual(ctx.exception.detail["code"], "SUBSCRIPTION_REQUIRED")
        self.assertEqual(ctx.exception.detail["message"], "Active subscription required")

    def test_plan_call_limit_exhausted(self):
        user = UserFactory(monthly_calls_used=50)
        SubscriptionFactory(
            user=user,
            plan=PlanFactory(call_limit=50),
            status=SubscriptionStatus.ACTIVE,
            start_date=datetime.utcnow(),
            end_date=datetime.utcnow() + timedelta(days=10),
        )
        with self.assertRaises(HTTPException) as ctx:
            require_active_subscription(user)

        self.assertEqual(ctx.exception.detail["code"], "CALL_LIMIT_EXCEEDED")
        self.assertIsInstance(ctx.exception.detail["entitlement"]["end_date"], str)

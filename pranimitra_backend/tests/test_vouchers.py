from datetime import datetime, timedelta
from decimal import Decimal

from app.core.exceptions import VoucherIneligible, VoucherInvalid, VoucherNotApplicable
from app.models.subscription import PlanType, SubscriptionStatus
from app.models.user import UserRole
from app.models.voucher import DiscountType, Voucher, VoucherUsage
from app.services.vouchers import (
    ELIGIBILITY_RULES,
    apply_usage,
    compute_discount,
    evaluate_eligibility,
    find_applicable_vouchers,
    get_user_usage_count,
    preview_voucher,
    resolve_voucher,
)

from tests.base import DatabaseTestCase
from tests.factories import PlanFactory, SubscriptionFactory, UserFactory, VoucherFactory


class EligibilityTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = UserFactory()
        self.plan = PlanFactory(name="basic", plan_type=PlanType.BASIC)

    def check(self, voucher, used_count=0, plan=None):
        return evaluate_eligibility(voucher, self.user, plan or self.plan, used_count)

    def test_unrestricted_voucher_is_eligible(self):
        result = self.check(VoucherFactory())
        self.assertTrue(result.eligible)
        self.assertIsNone(result.reason)

    def test_rules_run_in_fixed_order(self):
        reasons = [rule.reason for rule in ELIGIBILITY_RULES]
        self.assertEqual(reasons, [
            "Voucher is not currently valid",
            "Voucher usage limit exceeded",
            "User has reached usage limit for this voucher",
            "Voucher not applicable for your user type",
            "Voucher only for first-time users",
            "Voucher not applicable for your location",
            "Voucher not applicable for your farming type",
            "Voucher not applicable to this plan",
        ])

    def test_inactive_voucher(self):
        result = self.check(VoucherFactory(is_active=False))
        self.assertEqual(result.reason, "Voucher is not currently valid")

    def test_voucher_not_started_or_expired(self):
        future = VoucherFactory(start_date=datetime.utcnow() + timedelta(days=1))
        expired = VoucherFactory(end_date=datetime.utcnow() - timedelta(seconds=1))
        self.assertEqual(self.check(future).reason, "Voucher is not currently valid")
        self.assertEqual(self.check(expired).reason, "Voucher is not currently valid")

    def test_total_limit_reached(self):
        voucher = VoucherFactory(total_limit=5, total_used=5)
        self.assertEqual(self.check(voucher).reason, "Voucher usage limit exceeded")

    def test_unlimited_total_is_skipped(self):
        voucher = VoucherFactory(total_limit=None, total_used=10_000)
        self.assertTrue(self.check(voucher).eligible)

    def test_per_user_limit(self):
        voucher = VoucherFactory(per_user_limit=2)
        self.assertTrue(self.check(voucher, used_count=1).eligible)
        self.assertEqual(
            self.check(voucher, used_count=2).reason,
            "User has reached usage limit for this voucher",
        )

    def test_user_type_filter(self):
        voucher = VoucherFactory(user_types=["support"])
        self.assertEqual(self.check(voucher).reason, "Voucher not applicable for your user type")
        self.user.role = UserRole.SUPPORT
        self.assertTrue(self.check(voucher).eligible)

    def test_first_time_user_filter(self):
        voucher = VoucherFactory(first_time_user=True)
        self.assertTrue(self.check(voucher).eligible)

        SubscriptionFactory(user=self.user, status=SubscriptionStatus.FREE)
        self.assertTrue(self.check(voucher).eligible)

        self.user.subscription.status = SubscriptionStatus.EXPIRED
        self.assertEqual(self.check(voucher).reason, "Voucher only for first-time users")

    def test_location_filter_by_state(self):
        voucher = VoucherFactory(locations=[{"state": "Maharashtra", "districts": []}])
        self.assertEqual(self.check(voucher).reason, "Voucher not applicable for your location")

        voucher = VoucherFactory(locations=[{"state": "telangana", "districts": []}])
        self.assertTrue(self.check(voucher).eligible)

    def test_location_filter_by_district(self):
        voucher = VoucherFactory(locations=[{"state": "Telangana", "districts": ["Nizamabad"]}])
        self.assertEqual(self.check(voucher).reason, "Voucher not applicable for your location")

        voucher = VoucherFactory(locations=[
            {"state": "Telangana", "districts": ["Nizamabad"]},
            {"state": "Telangana", "districts": ["Warangal", "Karimnagar"]},
        ])
        self.assertTrue(self.check(voucher).eligible)

    def test_farming_type_filter(self):
        voucher = VoucherFactory(farming_types=["poultry", "fishery"])
        self.assertEqual(self.check(voucher).reason, "Voucher not applicable for your farming type")

        self.user.farming_types = ["dairy", "poultry"]
        self.assertTrue(self.check(voucher).eligible)

    def test_applicable_plans_accepts_id_type_or_name(self):
        other = PlanFactory(plan_type=PlanType.PREMIUM)
        for applicable in ([str(self.plan.id)], ["basic"], ["BASIC"], ["all"], []):
            voucher = VoucherFactory(applicable_plans=applicable)
            self.assertTrue(self.check(voucher).eligible, applicable)

        voucher = VoucherFactory(applicable_plans=[str(other.id), "premium"])
        self.assertEqual(self.check(voucher).reason, "Voucher not applicable to this plan")

    def test_first_failing_rule_wins(self):
        voucher = VoucherFactory(
            is_active=False,
            total_limit=1,
            total_used=1,
            farming_types=["fishery"],
        )
        self.assertEqual(self.check(voucher, used_count=5).reason, "Voucher is not currently valid")


class DiscountTestCase(DatabaseTestCase):

    def test_percentage_discount(self):
        voucher = VoucherFactory(value=Decimal("50"), max_discount=Decimal("300"))
        result = compute_discount(voucher, Decimal("299"), "monthly")
        self.assertIsNone(result.error)
        self.assertEqual(result.discount, Decimal("149.50"))

    def test_percentage_discount_capped(self):
        voucher = VoucherFactory(value=Decimal("50"), max_discount=Decimal("300"))
        result = compute_discount(voucher, Decimal("2999"), "yearly")
        self.assertEqual(result.discount, Decimal("300.00"))

    def test_percentage_without_cap(self):
        voucher = VoucherFactory(value=Decimal("20"), max_discount=None)
        self.assertEqual(compute_discount(voucher, Decimal("2999"), "yearly").discount, Decimal("599.80"))

    def test_rounds_half_up(self):
        voucher = VoucherFactory(value=Decimal("12.5"), max_discount=None, min_order_amount=Decimal("0"))
        # 0.025 -> 0.03 and 0.0125 -> 0.01
        self.assertEqual(compute_discount(voucher, Decimal("0.2"), "monthly").discount, Decimal("0.03"))
        self.assertEqual(compute_discount(voucher, Decimal("0.1"), "monthly").discount, Decimal("0.01"))

    def test_fixed_discount_never_exceeds_amount(self):
        voucher = VoucherFactory(discount_type=DiscountType.FIXED, value=Decimal("500"), min_order_amount=Decimal("0"))
        self.assertEqual(compute_discount(voucher, Decimal("299"), "monthly").discount, Decimal("299.00"))
        voucher = VoucherFactory(discount_type=DiscountType.FIXED, value=Decimal("50"), min_order_amount=Decimal("0"))
        self.assertEqual(compute_discount(voucher, Decimal("299"), "monthly").discount, Decimal("50.00"))

    def test_free_trial_waives_full_amount(self):
        voucher = VoucherFactory(discount_type=DiscountType.FREE_TRIAL, value=Decimal("7"))
        self.assertEqual(compute_discount(voucher, Decimal("599"), "monthly").discount, Decimal("599.00"))

    def test_below_minimum_order(self):
        voucher = VoucherFactory(min_order_amount=Decimal("500"))
        result = compute_discount(voucher, Decimal("299"), "monthly")
        self.assertEqual(result.error, "Order amount below minimum required")
        self.assertEqual(result.discount, Decimal("0"))

    def test_billing_cycle_restriction(self):
        voucher = VoucherFactory(billing_cycles=["yearly"])
        result = compute_discount(voucher, Decimal("299"), "monthly")
        self.assertEqual(result.error, "Voucher not applicable for this billing cycle")
        self.assertIsNone(compute_discount(voucher, Decimal("2999"), "yearly").error)

    def test_discount_bounded_by_amount_and_cap(self):
        voucher = VoucherFactory(value=Decimal("100"), max_discount=Decimal("250"), min_order_amount=Decimal("0"))
        for amount in ("0", "0.01", "99.99", "250", "251", "1000"):
            discount = compute_discount(voucher, Decimal(amount), "monthly").discount
            self.assertLessEqual(discount, Decimal(amount))
            self.assertLessEqual(discount, Decimal("250"))


class ApplyUsageTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = UserFactory()

    def reload(self, voucher):
        self.db.expire_all()
        return self.db.get(Voucher, voucher.id)

    def test_first_use_inserts_ledger_entry(self):
        voucher = VoucherFactory(per_user_limit=2)
        self.assertTrue(apply_usage(self.db, voucher.id, self.user.id))
        self.db.commit()

        voucher = self.reload(voucher)
        self.assertEqual(voucher.total_used, 1)
        usage = self.db.query(VoucherUsage).filter_by(voucher_id=voucher.id, user_id=self.user.id).one()
        self.assertEqual(usage.used_count, 1)
        self.assertIsNotNone(usage.last_used)

    def test_second_use_increments_ledger(self):
        voucher = VoucherFactory(per_user_limit=2)
        apply_usage(self.db, voucher.id, self.user.id)
        apply_usage(self.db, voucher.id, self.user.id)
        self.db.commit()

        self.assertEqual(self.reload(voucher).total_used, 2)
        self.assertEqual(get_user_usage_count(self.db, voucher.id, self.user.id), 2)

    def test_per_user_cap_is_not_exceeded(self):
        voucher = VoucherFactory(per_user_limit=1)
        self.assertTrue(apply_usage(self.db, voucher.id, self.user.id))
        self.assertFalse(apply_usage(self.db, voucher.id, self.user.id))
        self.db.commit()

        self.assertEqual(self.reload(voucher).total_used, 1)
        self.assertEqual(get_user_usage_count(self.db, voucher.id, self.user.id), 1)

    def test_total_cap_is_not_exceeded(self):
        voucher = VoucherFactory(total_limit=2, total_used=1)
        other = UserFactory()
        self.assertTrue(apply_usage(self.db, voucher.id, self.user.id))
        self.assertFalse(apply_usage(self.db, voucher.id, other.id))
        self.db.commit()

        self.assertEqual(self.reload(voucher).total_used, 2)
        self.assertEqual(get_user_usage_count(self.db, voucher.id, other.id), 0)

    def test_usage_cap_makes_user_ineligible(self):
        plan = PlanFactory()
        voucher = VoucherFactory(per_user_limit=1)
        apply_usage(self.db, voucher.id, self.user.id)
        self.db.commit()

        used = get_user_usage_count(self.db, voucher.id, self.user.id)
        result = evaluate_eligibility(self.reload(voucher), self.user, plan, used)
        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, "User has reached usage limit for this voucher")


class PreviewTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = UserFactory()
        self.plan = PlanFactory(name="basic")

    def test_resolve_is_case_insensitive_and_trimmed(self):
        voucher = VoucherFactory(code="WELCOME50")
        self.assertEqual(resolve_voucher(self.db, "  welcome50 ").id, voucher.id)
        self.assertIsNone(resolve_voucher(self.db, "WELCOME5"))
        self.assertIsNone(resolve_voucher(self.db, ""))

    def test_resolve_ignores_inactive(self):
        VoucherFactory(code="OLDCODE", is_active=False)
        self.assertIsNone(resolve_voucher(self.db, "oldcode"))

    def test_preview_welcome_voucher(self):
        VoucherFactory(code="WELCOME50", value=Decimal("50"), max_discount=Decimal("300"),
                       min_order_amount=Decimal("100"), per_user_limit=1)
        quote = preview_voucher(self.db, self.user, self.plan, "monthly", "welcome50")
        self.assertEqual(quote.original_amount, Decimal("299.00"))
        self.assertEqual(quote.discount, Decimal("149.50"))
        self.assertEqual(quote.final_amount, Decimal("149.50"))

    def test_preview_unknown_code(self):
        with self.assertRaises(VoucherInvalid):
            preview_voucher(self.db, self.user, self.plan, "monthly", "NOPE")

    def test_preview_ineligible_carries_reason(self):
        VoucherFactory(code="FISHERY", farming_types=["fishery"])
        with self.assertRaises(VoucherIneligible) as ctx:
            preview_voucher(self.db, self.user, self.plan, "monthly", "FISHERY")
        self.assertEqual(ctx.exception.message, "Voucher not applicable for your farming type")

    def test_preview_not_applicable_carries_reason(self):
        VoucherFactory(code="BIGORDER", min_order_amount=Decimal("1000"))
        with self.assertRaises(VoucherNotApplicable) as ctx:
            preview_voucher(self.db, self.user, self.plan, "monthly", "BIGORDER")
        self.assertEqual(ctx.exception.message, "Order amount below minimum required")

    def test_find_applicable_vouchers(self):
        public = VoucherFactory(code="PUBLIC10", is_public=True)
        VoucherFactory(code="PRIVATE10", is_public=False)
        VoucherFactory(code="YEARLY10", is_public=True, billing_cycles=["yearly"])
        VoucherFactory(code="DAIRYNO", is_public=True, farming_types=["fishery"])

        codes = [v.code for v in find_applicable_vouchers(self.db, self.user, self.plan, "monthly")]
        self.assertEqual(codes, [public.code])

"""
Voucher engine: eligibility rules, discount calculation and usage accounting.

Eligibility is a fixed, ordered tuple of rule objects. Each rule looks at
an EligibilityContext and either passes or fails with its own reason; the
first failure wins. Discount calculation is plain Decimal arithmetic.
apply_usage is the only code that mutates voucher counters and it does so
with conditional UPDATE statements inside the caller's transaction.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.exceptions import VoucherInvalid, VoucherIneligible, VoucherNotApplicable
from app.models.subscription import Plan, SubscriptionStatus
from app.models.user import User
from app.models.voucher import DiscountType, Voucher, VoucherUsage

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def round_currency(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class EligibilityContext:
    voucher: Voucher
    user: User
    plan: Optional[Plan]
    used_count: int
    now: datetime


@dataclass
class EligibilityResult:
    eligible: bool
    reason: Optional[str] = None


@dataclass
class DiscountResult:
    discount: Decimal
    error: Optional[str] = None


@dataclass
class VoucherQuote:
    voucher: Voucher
    original_amount: Decimal
    discount: Decimal

    @property
    def final_amount(self) -> Decimal:
        return max(Decimal("0"), round_currency(self.original_amount - self.discount))


# Eligibility rules, evaluated in declaration order

@dataclass(frozen=True)
class ActiveWindowRule:
    reason: str = "Voucher is not currently valid"

    def passes(self, ctx: EligibilityContext) -> bool:
        v = ctx.voucher
        if not v.is_active:
            return False
        if v.start_date and ctx.now < v.start_date:
            return False
        if v.end_date and ctx.now > v.end_date:
            return False
        return True


@dataclass(frozen=True)
class TotalLimitRule:
    reason: str = "Voucher usage limit exceeded"

    def passes(self, ctx: EligibilityContext) -> bool:
        limit = ctx.voucher.total_limit
        return limit is None or (ctx.voucher.total_used or 0) < limit


@dataclass(frozen=True)
class PerUserLimitRule:
    reason: str = "User has reached usage limit for this voucher"

    def passes(self, ctx: EligibilityContext) -> bool:
        return ctx.used_count < (ctx.voucher.per_user_limit or 1)


@dataclass(frozen=True)
class UserTypeRule:
    reason: str = "Voucher not applicable for your user type"

    def passes(self, ctx: EligibilityContext) -> bool:
        allowed = ctx.voucher.user_types or []
        if not allowed:
            return True
        role = getattr(ctx.user.role, "value", ctx.user.role)
        return role in allowed


@dataclass(frozen=True)
class FirstTimeUserRule:
    reason: str = "Voucher only for first-time users"

    def passes(self, ctx: EligibilityContext) -> bool:
        if not ctx.voucher.first_time_user:
            return True
        subscription = ctx.user.subscription
        # "free" means the user has never held a paid subscription
        return subscription is None or subscription.status == SubscriptionStatus.FREE


@dataclass(frozen=True)
class LocationRule:
    reason: str = "Voucher not applicable for your location"

    def passes(self, ctx: EligibilityContext) -> bool:
        locations = ctx.voucher.locations or []
        if not locations:
            return True
        user_state = _norm(ctx.user.state)
        user_district = _norm(ctx.user.district)
        for location in locations:
            if _norm(location.get("state")) != user_state:
                continue
            districts = location.get("districts") or []
            if not districts or user_district in {_norm(d) for d in districts}:
                return True
        return False


@dataclass(frozen=True)
class FarmingTypeRule:
    reason: str = "Voucher not applicable for your farming type"

    def passes(self, ctx: EligibilityContext) -> bool:
        required = set(ctx.voucher.farming_types or [])
        if not required:
            return True
        return bool(required & set(ctx.user.farming_types or []))


@dataclass(frozen=True)
class ApplicablePlanRule:
    reason: str = "Voucher not applicable to this plan"

    def passes(self, ctx: EligibilityContext) -> bool:
        applicable = {str(p).lower() for p in (ctx.voucher.applicable_plans or [])}
        if not applicable or "all" in applicable:
            return True
        if ctx.plan is None:
            return False
        return bool(applicable & plan_keys(ctx.plan))


ELIGIBILITY_RULES = (
    ActiveWindowRule(),
    TotalLimitRule(),
    PerUserLimitRule(),
    UserTypeRule(),
    FirstTimeUserRule(),
    LocationRule(),
    FarmingTypeRule(),
    ApplicablePlanRule(),
)


def _norm(value) -> Optional[str]:
    return value.strip().lower() if isinstance(value, str) else value


def plan_keys(plan: Plan) -> set:
    """Identifiers a voucher's applicable_plans list may use for this plan."""
    return {str(plan.id), plan.plan_type.value, plan.name.lower()}


def evaluate_eligibility(
    voucher: Voucher,
    user: User,
    plan: Optional[Plan],
    used_count: int = 0,
    now: datetime = None,
) -> EligibilityResult:
    ctx = EligibilityContext(
        voucher=voucher,
        user=user,
        plan=plan,
        used_count=used_count,
        now=now or datetime.utcnow(),
    )
    for rule in ELIGIBILITY_RULES:
        if not rule.passes(ctx):
            return EligibilityResult(eligible=False, reason=rule.reason)
    return EligibilityResult(eligible=True)


def compute_discount(voucher: Voucher, order_amount, billing_cycle) -> DiscountResult:
    amount = Decimal(order_amount)
    cycle = getattr(billing_cycle, "value", billing_cycle)

    if amount < Decimal(voucher.min_order_amount or 0):
        return DiscountResult(discount=Decimal("0"), error="Order amount below minimum required")

    if voucher.billing_cycles and cycle not in voucher.billing_cycles:
        return DiscountResult(discount=Decimal("0"), error="Voucher not applicable for this billing cycle")

    value = Decimal(voucher.value or 0)
    if voucher.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / 100
        if voucher.max_discount is not None and discount > Decimal(voucher.max_discount):
            discount = Decimal(voucher.max_discount)
    elif voucher.discount_type == DiscountType.FIXED:
        discount = min(value, amount)
    else:
        discount = amount

    return DiscountResult(discount=min(round_currency(discount), round_currency(amount)))


def resolve_voucher(db: Session, code: str) -> Optional[Voucher]:
    if not code:
        return None
    return db.query(Voucher).filter(
        Voucher.code == code.strip().upper(),
        Voucher.is_active == True,  # noqa: E712
    ).first()


def get_user_usage_count(db: Session, voucher_id: int, user_id: int) -> int:
    used = db.query(VoucherUsage.used_count).filter(
        VoucherUsage.voucher_id == voucher_id,
        VoucherUsage.user_id == user_id,
    ).scalar()
    return used or 0


def preview_voucher(db: Session, user: User, plan: Plan, billing_cycle, code: str) -> VoucherQuote:
    """Resolve a code and price it against a plan, raising on any rejection."""
    voucher = resolve_voucher(db, code)
    if not voucher:
        raise VoucherInvalid()

    used_count = get_user_usage_count(db, voucher.id, user.id)
    eligibility = evaluate_eligibility(voucher, user, plan, used_count)
    if not eligibility.eligible:
        raise VoucherIneligible(eligibility.reason)

    base_amount = Decimal(plan.price_for(billing_cycle))
    result = compute_discount(voucher, base_amount, billing_cycle)
    if result.error:
        raise VoucherNotApplicable(result.error)

    return VoucherQuote(voucher=voucher, original_amount=base_amount, discount=result.discount)


def find_applicable_vouchers(db: Session, user: User, plan: Plan, billing_cycle) -> List[Voucher]:
    cycle = getattr(billing_cycle, "value", billing_cycle)
    vouchers = db.query(Voucher).filter(
        Voucher.is_active == True,  # noqa: E712
        Voucher.is_public == True,  # noqa: E712
    ).all()

    now = datetime.utcnow()
    applicable = []
    for voucher in vouchers:
        if voucher.billing_cycles and cycle not in voucher.billing_cycles:
            continue
        used_count = get_user_usage_count(db, voucher.id, user.id)
        if evaluate_eligibility(voucher, user, plan, used_count, now).eligible:
            applicable.append(voucher)
    return applicable


def apply_usage(db: Session, voucher_id: int, user_id: int, now: datetime = None) -> bool:
    """
    Count one redemption of a voucher by a user.

    Must run inside the transaction that flips the payment to paid, and
    only there. Both counters are bumped with conditional UPDATEs so
    concurrent redemptions cannot push either past its cap. Returns False
    when a cap was already reached and nothing was counted.
    """
    now = now or datetime.utcnow()

    bumped = db.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher_id,
            or_(Voucher.total_limit.is_(None), Voucher.total_used < Voucher.total_limit),
        )
        .values(total_used=Voucher.total_used + 1)
        .execution_options(synchronize_session=False)
    ).rowcount
    if not bumped:
        logger.warning("Voucher %s reached its total limit before redemption by user %s", voucher_id, user_id)
        return False

    per_user_limit = db.query(Voucher.per_user_limit).filter(Voucher.id == voucher_id).scalar() or 1
    ledger_bumped = db.execute(
        update(VoucherUsage)
        .where(
            VoucherUsage.voucher_id == voucher_id,
            VoucherUsage.user_id == user_id,
            VoucherUsage.used_count < per_user_limit,
        )
        .values(used_count=VoucherUsage.used_count + 1, last_used=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    if ledger_bumped:
        return True

    existing = db.query(VoucherUsage.id).filter(
        VoucherUsage.voucher_id == voucher_id,
        VoucherUsage.user_id == user_id,
    ).first()
    if existing:
        # User is at the per-user cap; give back the total slot taken above
        db.execute(
            update(Voucher)
            .where(Voucher.id == voucher_id)
            .values(total_used=Voucher.total_used - 1)
            .execution_options(synchronize_session=False)
        )
        logger.warning("User %s reached the per-user limit of voucher %s", user_id, voucher_id)
        return False

    db.add(VoucherUsage(voucher_id=voucher_id, user_id=user_id, used_count=1, last_used=now))
    db.flush()
    return True

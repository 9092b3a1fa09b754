"""
Order creation: price a plan, apply an optional voucher, open a Razorpay
order and persist the local Payment in "created" state.
"""
import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.core import config
from app.core.exceptions import GatewayUnavailable, PlanNotFound
from app.models.payment import BillingCycle, Payment, PaymentStatus
from app.models.subscription import Plan
from app.models.user import User
from app.services.gateway import GatewayError, RazorpayGateway
from app.services.vouchers import preview_voucher, round_currency

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def generate_order_id() -> str:
    """PM_<base36 millisecond timestamp>_<5 random base36 chars>, upper-cased."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(BASE36, k=5))
    return f"PM_{timestamp}_{suffix}".upper()


def subscription_window(billing_cycle, start: datetime = None) -> Tuple[datetime, datetime]:
    start = start or datetime.utcnow()
    cycle = BillingCycle(getattr(billing_cycle, "value", billing_cycle))
    if cycle == BillingCycle.YEARLY:
        return start, start + relativedelta(years=1)
    return start, start + relativedelta(months=1)


@dataclass
class RequestMeta:
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    source: str = "web"


@dataclass
class OrderSummary:
    payment: Payment
    plan: Plan
    final_amount: Decimal
    original_amount: Decimal
    discount_amount: Decimal
    voucher_code: Optional[str]
    key_id: str
    prefill: dict = field(default_factory=dict)

    def as_dict(self, language: str = "english") -> dict:
        details = self.plan.localized_details(language)
        return {
            "order_id": self.payment.order_id,
            "razorpay_order_id": self.payment.razorpay_order_id,
            "amount": self.final_amount,
            "currency": self.payment.currency,
            "key_id": self.key_id,
            "plan": {
                "id": self.plan.id,
                "name": details["display_name"],
                "billing_cycle": self.payment.billing_cycle.value,
            },
            "discount": {
                "code": self.voucher_code,
                "amount": self.discount_amount,
                "original_amount": self.original_amount,
            } if self.voucher_code else None,
            "subscription": {
                "start_date": self.payment.subscription_start_date,
                "end_date": self.payment.subscription_end_date,
            },
            "prefill": self.prefill,
        }


def get_active_plan(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id, Plan.is_active == True).first()  # noqa: E712
    if not plan:
        raise PlanNotFound()
    return plan


def create_order(
    db: Session,
    gateway: RazorpayGateway,
    user: User,
    plan_id: int,
    billing_cycle,
    voucher_code: Optional[str] = None,
    meta: RequestMeta = None,
) -> OrderSummary:
    meta = meta or RequestMeta()
    cycle = BillingCycle(getattr(billing_cycle, "value", billing_cycle))

    plan = get_active_plan(db, plan_id)
    base_amount = round_currency(plan.price_for(cycle))

    discount = Decimal("0")
    discount_percentage = Decimal("0")
    applied_code = None
    if voucher_code:
        quote = preview_voucher(db, user, plan, cycle, voucher_code)
        discount = quote.discount
        applied_code = quote.voucher.code
        if base_amount:
            discount_percentage = round_currency(discount / base_amount * 100)

    final_amount = max(Decimal("0"), round_currency(base_amount - discount))
    order_id = generate_order_id()

    try:
        remote = gateway.create_remote_order(
            final_amount,
            plan.currency or config.DEFAULT_CURRENCY,
            receipt=order_id,
            notes={
                "user_id": str(user.id),
                "plan_id": str(plan.id),
                "billing_cycle": cycle.value,
                "coupon_code": applied_code or "",
            },
        )
    except GatewayError as e:
        raise GatewayUnavailable() from e

    start_date, end_date = subscription_window(cycle)

    payment = Payment(
        user_id=user.id,
        plan_id=plan.id,
        order_id=order_id,
        razorpay_order_id=remote.id,
        amount=base_amount,
        currency=remote.currency,
        billing_cycle=cycle,
        status=PaymentStatus.CREATED,
        coupon_code=applied_code,
        discount_amount=discount,
        discount_percentage=discount_percentage,
        gst=Decimal("0"),
        total_tax=Decimal("0"),
        subscription_start_date=start_date,
        subscription_end_date=end_date,
        subscription_auto_renewal=False,
        customer_name=user.name,
        customer_email=user.email,
        customer_phone=user.phone_number,
        customer_address=user.address,
        user_agent=meta.user_agent,
        ip_address=meta.ip_address,
        source=meta.source or "web",
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)

    logger.info(
        "Created order %s (razorpay %s) for user %s: plan %s %s, amount %s, discount %s",
        order_id, remote.id, user.id, plan.id, cycle.value, base_amount, discount,
    )

    return OrderSummary(
        payment=payment,
        plan=plan,
        final_amount=final_amount,
        original_amount=base_amount,
        discount_amount=discount,
        voucher_code=applied_code,
        key_id=gateway.public_key,
        prefill={
            "name": user.name,
            "email": user.email,
            "contact": user.phone_number,
        },
    )

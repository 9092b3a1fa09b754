"""
Subscription projection: what a user is entitled to right now.

Computed on read from the user's subscription row and call counters;
nothing here writes to the database.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder

from app.core import config
from app.core.security import get_current_user
from app.models.subscription import Plan, SubscriptionStatus
from app.models.user import User

UNLIMITED = -1


@dataclass
class Entitlement:
    status: str
    plan_id: Optional[int]
    plan_name: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    days_remaining: int
    call_limit: int  # -1 means unlimited
    calls_used: int
    calls_remaining: Optional[int]  # None when unlimited
    can_make_call: bool

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def as_dict(self) -> dict:
        return asdict(self)


def _calls_used(user: User, now: datetime) -> int:
    last_reset = user.last_reset_date
    # Counters roll over on the first call of a new month; treat them as reset until then
    if last_reset is None or (last_reset.year, last_reset.month) != (now.year, now.month):
        return 0
    return user.monthly_calls_used or 0


def get_entitlement(user: User, plan: Optional[Plan] = None, now: datetime = None) -> Entitlement:
    now = now or datetime.utcnow()
    subscription = user.subscription
    plan = plan or (subscription.plan if subscription else None)

    current = subscription.status if subscription else SubscriptionStatus.FREE
    end_date = subscription.end_date if subscription else None
    if current == SubscriptionStatus.ACTIVE and (end_date is None or end_date <= now):
        current = SubscriptionStatus.EXPIRED

    if current == SubscriptionStatus.ACTIVE:
        call_limit = plan.call_limit if plan and plan.call_limit is not None else UNLIMITED
        days_remaining = max(0, (end_date - now).days)
    elif current == SubscriptionStatus.FREE:
        call_limit = config.FREE_TIER_CALL_LIMIT
        days_remaining = 0
    else:
        call_limit = 0
        days_remaining = 0

    calls_used = _calls_used(user, now)
    if call_limit < 0:
        calls_remaining = None
        can_make_call = True
    else:
        calls_remaining = max(0, call_limit - calls_used)
        can_make_call = calls_remaining > 0

    active_plan = plan if current == SubscriptionStatus.ACTIVE else None
    return Entitlement(
        status=current.value,
        plan_id=active_plan.id if active_plan else None,
        plan_name=active_plan.name if active_plan else None,
        start_date=subscription.start_date if subscription else None,
        end_date=end_date,
        days_remaining=days_remaining,
        call_limit=call_limit,
        calls_used=calls_used,
        calls_remaining=calls_remaining,
        can_make_call=can_make_call,
    )


def require_active_subscription(current_user: User = Depends(get_current_user)) -> Entitlement:
    """Dependency for endpoints that consume call quota."""
    entitlement = get_entitlement(current_user)
    if entitlement.can_make_call:
        return entitlement

    if entitlement.status == SubscriptionStatus.FREE.value:
        message = "Free tier monthly limit exceeded. Please upgrade to continue."
        code = "FREE_LIMIT_EXCEEDED"
    elif not entitlement.is_active:
        message = "Active subscription required"
        code = "SUBSCRIPTION_REQUIRED"
    else:
        message = "Call limit exceeded"
        code = "CALL_LIMIT_EXCEEDED"

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"message": message, "code": code, "entitlement": jsonable_encoder(entitlement.as_dict())},
    )

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payment import PaymentHistoryItem, PaymentHistoryResponse
from app.schemas.user import EntitlementResponse, SubscriptionResponse, UserSummary
from app.services.entitlements import get_entitlement

router = APIRouter()


@router.get("/users/subscription", response_model=SubscriptionResponse, tags=["Users"])
def get_my_subscription(current_user: User = Depends(get_current_user)):
    """
    Current entitlement: plan, validity window and remaining call quota.
    """
    entitlement = get_entitlement(current_user)
    subscription = current_user.subscription
    plan = subscription.plan if subscription and entitlement.is_active else None
    return SubscriptionResponse(
        user=UserSummary.model_validate(current_user),
        subscription=EntitlementResponse(**entitlement.as_dict()),
        plan=plan.localized_details(current_user.preferred_language or "english") if plan else None,
    )


@router.get("/users/payments", response_model=PaymentHistoryResponse, tags=["Users"])
def get_payment_history(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user)
):
    """
    Payment history for the current user, newest first.
    """
    query = db.query(Payment).filter(Payment.user_id == current_user.id)
    total = query.count()
    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()).offset((page - 1) * limit).limit(limit).all()

    history = []
    for payment in payments:
        history.append(PaymentHistoryItem(
            id=payment.id,
            order_id=payment.order_id,
            plan_id=payment.plan_id,
            plan_name=payment.plan.name if payment.plan else None,
            amount=float(payment.amount),
            discount_amount=float(payment.discount_amount or 0),
            final_amount=float(payment.final_amount),
            currency=payment.currency,
            billing_cycle=payment.billing_cycle.value,
            status=payment.status.value,
            payment_method=payment.payment_method,
            coupon_code=payment.coupon_code,
            invoice_number=payment.invoice_number,
            refund_amount=float(payment.refund_amount) if payment.refund_amount is not None else None,
            created_at=payment.created_at,
            paid_at=payment.paid_at,
        ))

    return PaymentHistoryResponse(payments=history, total=total, page=page, limit=limit)

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.payment import BillingCycleName
from app.schemas.voucher import ApplicableVoucher, VoucherValidateRequest, VoucherValidateResponse
from app.services.orders import get_active_plan
from app.services.vouchers import compute_discount, find_applicable_vouchers, preview_voucher

router = APIRouter()


@router.post("/vouchers/validate", response_model=VoucherValidateResponse, tags=["Vouchers"])
def validate_voucher(
        body: VoucherValidateRequest,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user)
):
    """
    Check a voucher against a plan and show the resulting price without creating an order.
    """
    plan = get_active_plan(db, body.plan_id)
    quote = preview_voucher(db, current_user, plan, body.billing_cycle, body.code)
    return VoucherValidateResponse(
        valid=True,
        code=quote.voucher.code,
        name=quote.voucher.name,
        discount_type=quote.voucher.discount_type.value,
        discount_amount=float(quote.discount),
        original_amount=float(quote.original_amount),
        final_amount=float(quote.final_amount),
    )


@router.get("/vouchers/applicable", response_model=List[ApplicableVoucher], tags=["Vouchers"])
def list_applicable_vouchers(
        plan_id: int,
        billing_cycle: BillingCycleName = Query("monthly"),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user)
):
    """
    Public vouchers the current user could redeem on this plan.
    """
    plan = get_active_plan(db, plan_id)
    amount = plan.price_for(billing_cycle)

    vouchers = []
    for voucher in find_applicable_vouchers(db, current_user, plan, billing_cycle):
        result = compute_discount(voucher, amount, billing_cycle)
        if result.error:
            continue
        vouchers.append(ApplicableVoucher(
            code=voucher.code,
            name=voucher.name,
            description=voucher.description,
            discount_type=voucher.discount_type.value,
            value=float(voucher.value),
            max_discount=float(voucher.max_discount) if voucher.max_discount is not None else None,
            discount_amount=float(result.discount),
            end_date=voucher.end_date,
        ))
    return vouchers

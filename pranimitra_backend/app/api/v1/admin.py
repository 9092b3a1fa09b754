import logging
from datetime import datetime, timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.security import get_current_admin_user, get_current_staff_user
from app.db.session import get_db
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import Plan, PlanType, Subscription, SubscriptionStatus
from app.models.user import User, UserRole
from app.models.voucher import DiscountType, Voucher
from app.schemas.plan import PlanCreate, PlanDetails, PlanUpdate
from app.schemas.voucher import VoucherCreate, VoucherListResponse, VoucherResponse, VoucherUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


# Schemas
class DashboardStats(BaseModel):
    total_users: int
    active_subscriptions: int
    total_payments: int
    paid_payments: int
    failed_payments: int
    refunded_payments: int
    total_revenue: float
    total_discounts: float
    total_refunded: float
    total_vouchers: int
    active_vouchers: int
    voucher_redemptions: int


# Admin Endpoints

@router.get("/admin/stats", response_model=DashboardStats, tags=["Admin"])
def get_admin_dashboard_stats(
    db: Session = Depends(get_db),
    current_staff: User = Depends(get_current_staff_user)
):
    """Get payment and subscription statistics"""
    total_users = db.query(User).filter(User.role == UserRole.FARMER).count()
    active_subscriptions = db.query(Subscription).filter(
        Subscription.status == SubscriptionStatus.ACTIVE,
        Subscription.end_date > datetime.utcnow()
    ).count()

    counts = dict(
        db.query(Payment.status, func.count(Payment.id)).group_by(Payment.status).all()
    )

    # Revenue is what was actually charged: base price less discount plus tax
    total_revenue = db.query(
        func.sum(Payment.amount - Payment.discount_amount + Payment.total_tax)
    ).filter(Payment.status == PaymentStatus.PAID).scalar() or 0
    total_discounts = db.query(func.sum(Payment.discount_amount)).filter(
        Payment.status.in_((PaymentStatus.PAID, PaymentStatus.REFUNDED))
    ).scalar() or 0
    total_refunded = db.query(func.sum(Payment.refund_amount)).filter(
        Payment.status == PaymentStatus.REFUNDED
    ).scalar() or 0

    total_vouchers = db.query(Voucher).count()
    active_vouchers = db.query(Voucher).filter(Voucher.is_active == True).count()
    voucher_redemptions = db.query(func.sum(Voucher.total_used)).scalar() or 0

    return {
        "total_users": total_users,
        "active_subscriptions": active_subscriptions,
        "total_payments": sum(counts.values()),
        "paid_payments": counts.get(PaymentStatus.PAID, 0),
        "failed_payments": counts.get(PaymentStatus.FAILED, 0),
        "refunded_payments": counts.get(PaymentStatus.REFUNDED, 0),
        "total_revenue": float(total_revenue),
        "total_discounts": float(total_discounts),
        "total_refunded": float(total_refunded),
        "total_vouchers": total_vouchers,
        "active_vouchers": active_vouchers,
        "voucher_redemptions": int(voucher_redemptions),
    }


# Vouchers

@router.post("/admin/vouchers", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED, tags=["Admin"])
def create_voucher(
    body: VoucherCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Create a new voucher"""
    existing = db.query(Voucher).filter(Voucher.code == body.code).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Voucher code already exists"
        )

    data = body.model_dump(exclude={"validity_days"})
    start_date = body.start_date or datetime.utcnow()
    data["start_date"] = start_date
    data["end_date"] = body.end_date or start_date + timedelta(days=body.validity_days)
    data["discount_type"] = DiscountType(body.discount_type)

    voucher = Voucher(**data, created_by=current_admin.id, total_used=0)
    db.add(voucher)
    db.commit()
    db.refresh(voucher)

    logger.info("Admin %s created voucher %s", current_admin.id, voucher.code)
    return voucher


@router.get("/admin/vouchers", response_model=VoucherListResponse, tags=["Admin"])
def list_vouchers(
    status_filter: Optional[Literal["active", "inactive", "expired"]] = Query(None, alias="status"),
    discount_type: Optional[Literal["percentage", "fixed", "free_trial"]] = Query(None, alias="type"),
    search: Optional[str] = Query(None, description="Search by code or name"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_staff: User = Depends(get_current_staff_user)
):
    """List vouchers with usage figures"""
    now = datetime.utcnow()
    query = db.query(Voucher)

    if status_filter == "active":
        query = query.filter(
            Voucher.is_active == True,
            or_(Voucher.start_date.is_(None), Voucher.start_date <= now),
            or_(Voucher.end_date.is_(None), Voucher.end_date >= now),
        )
    elif status_filter == "inactive":
        query = query.filter(Voucher.is_active == False)
    elif status_filter == "expired":
        query = query.filter(Voucher.end_date < now)

    if discount_type:
        query = query.filter(Voucher.discount_type == DiscountType(discount_type))

    if search:
        search_filter = f"%{search}%"
        query = query.filter(or_(Voucher.code.ilike(search_filter), Voucher.name.ilike(search_filter)))

    total = query.count()
    vouchers = query.order_by(Voucher.created_at.desc(), Voucher.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "vouchers": [VoucherResponse.model_validate(v) for v in vouchers],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


@router.put("/admin/vouchers/{voucher_id}", response_model=VoucherResponse, tags=["Admin"])
def update_voucher(
    voucher_id: int,
    body: VoucherUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Update a voucher. Code, discount kind and value are fixed once created."""
    voucher = db.query(Voucher).filter(Voucher.id == voucher_id).first()
    if not voucher:
        raise HTTPException(status_code=404, detail="Voucher not found")

    updates = body.model_dump(exclude_unset=True)
    if updates.get("total_limit") is not None and updates["total_limit"] < voucher.total_used:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Total limit cannot be below current usage ({voucher.total_used})"
        )
    for field, value in updates.items():
        setattr(voucher, field, value)

    db.commit()
    db.refresh(voucher)
    logger.info("Admin %s updated voucher %s: %s", current_admin.id, voucher.code, sorted(updates))
    return voucher


# Plans

@router.post("/admin/plans", response_model=PlanDetails, status_code=status.HTTP_201_CREATED, tags=["Admin"])
def create_plan(
    body: PlanCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Add a plan to the catalog"""
    if db.query(Plan).filter(Plan.name == body.name).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Plan with this name already exists"
        )

    data = body.model_dump(exclude={"metadata", "features"})
    data["plan_type"] = PlanType(body.plan_type)
    plan = Plan(
        **data,
        features=[feature.model_dump() for feature in body.features],
        plan_metadata=body.metadata,
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)

    logger.info("Admin %s created plan %s", current_admin.id, plan.name)
    return plan.localized_details()


@router.put("/admin/plans/{plan_id}", response_model=PlanDetails, tags=["Admin"])
def update_plan(
    plan_id: int,
    body: PlanUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Update plan pricing, limits or display text. Existing orders keep their price snapshot."""
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")

    updates = body.model_dump(exclude_unset=True)
    if "features" in updates:
        updates["features"] = [feature.model_dump() for feature in body.features or []]
    if "metadata" in updates:
        updates["plan_metadata"] = updates.pop("metadata")
    for field, value in updates.items():
        setattr(plan, field, value)

    db.commit()
    db.refresh(plan)
    logger.info("Admin %s updated plan %s", current_admin.id, plan.name)
    return plan.localized_details()


@router.delete("/admin/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Admin"])
def deactivate_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Deactivate a plan. Plans are never deleted because payments reference them."""
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")

    plan.is_active = False
    db.commit()
    logger.info("Admin %s deactivated plan %s", current_admin.id, plan.name)
    return None

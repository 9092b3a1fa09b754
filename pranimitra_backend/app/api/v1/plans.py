from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.db.session import get_db
from app.models.subscription import Plan
from app.schemas.plan import PlanDetails
from app.services.orders import get_active_plan

router = APIRouter()


@router.get("/plans", response_model=List[PlanDetails], tags=["Plans"])
def list_plans(
        language: str = Query("english"),
        db: Session = Depends(get_db)
):
    """
    Active plans in display order, localized to the requested language.
    """
    plans = db.query(Plan).filter(Plan.is_active == True).order_by(Plan.sort_order, Plan.price_monthly).all()
    return [plan.localized_details(language) for plan in plans]


@router.get("/plans/{plan_id}", response_model=PlanDetails, tags=["Plans"])
def get_plan(
        plan_id: int,
        language: str = Query("english"),
        db: Session = Depends(get_db)
):
    return get_active_plan(db, plan_id).localized_details(language)

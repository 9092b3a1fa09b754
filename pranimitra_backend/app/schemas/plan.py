from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from decimal import Decimal

PlanTypeName = Literal["free", "basic", "premium", "enterprise"]


class PlanFeature(BaseModel):
    name: dict  # {"en": ..., "hi": ..., "te": ...}
    included: bool = True


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    plan_type: PlanTypeName
    display_name: dict
    description: Optional[dict] = None
    price_monthly: Decimal = Field(ge=0)
    price_yearly: Decimal = Field(ge=0)
    currency: str = "INR"
    features: List[PlanFeature] = []
    call_limit: int = Field(default=0, ge=-1)  # -1 = unlimited
    call_duration_limit: int = Field(default=30, ge=1)
    sms_limit: int = Field(default=100, ge=0)
    priority_support: bool = False
    is_active: bool = True
    sort_order: int = 0
    metadata: Optional[dict] = None


class PlanUpdate(BaseModel):
    display_name: Optional[dict] = None
    description: Optional[dict] = None
    price_monthly: Optional[Decimal] = Field(default=None, ge=0)
    price_yearly: Optional[Decimal] = Field(default=None, ge=0)
    features: Optional[List[PlanFeature]] = None
    call_limit: Optional[int] = Field(default=None, ge=-1)
    call_duration_limit: Optional[int] = Field(default=None, ge=1)
    sms_limit: Optional[int] = Field(default=None, ge=0)
    priority_support: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    metadata: Optional[dict] = None


class PlanPrice(BaseModel):
    monthly: float
    yearly: float


class PlanLimits(BaseModel):
    call_limit: int
    call_duration_limit: Optional[int] = None
    sms_limit: Optional[int] = None
    priority_support: bool = False


class PlanDetails(BaseModel):
    id: int
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    price: PlanPrice
    currency: str
    features: List[dict] = []
    limits: PlanLimits
    plan_type: str
    metadata: dict = {}
    yearly_discount: int = 0

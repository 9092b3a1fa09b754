from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal

from app.schemas.payment import BillingCycleName

DiscountTypeName = Literal["percentage", "fixed", "free_trial"]


class LocationCondition(BaseModel):
    state: str
    districts: List[str] = []


class VoucherValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    plan_id: int
    billing_cycle: BillingCycleName


class VoucherValidateResponse(BaseModel):
    valid: bool
    code: str
    name: str
    discount_type: str
    discount_amount: float
    original_amount: float
    final_amount: float


class ApplicableVoucher(BaseModel):
    code: str
    name: str
    description: Optional[dict] = None
    discount_type: str
    value: float
    max_discount: Optional[float] = None
    discount_amount: float
    end_date: Optional[datetime] = None


class VoucherCreate(BaseModel):
    code: str = Field(min_length=4, max_length=20)
    name: str = Field(min_length=1)
    description: Optional[dict] = None
    discount_type: DiscountTypeName
    value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    applicable_plans: List[str] = []
    billing_cycles: List[BillingCycleName] = []
    total_limit: Optional[int] = Field(default=None, ge=1)
    per_user_limit: int = Field(default=1, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    validity_days: Optional[int] = Field(default=None, ge=1, le=365)
    is_active: bool = True
    is_public: bool = False
    first_time_user: bool = False
    user_types: List[Literal["farmer", "admin", "support"]] = []
    locations: List[LocationCondition] = []
    farming_types: List[str] = []
    campaign: Optional[str] = None
    category: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("Voucher code must be alphanumeric")
        return v

    @model_validator(mode="after")
    def check_value(self):
        if self.discount_type == "percentage" and self.value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if not self.end_date and not self.validity_days:
            raise ValueError("Either end_date or validity_days is required")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class VoucherUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[dict] = None
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    applicable_plans: Optional[List[str]] = None
    billing_cycles: Optional[List[BillingCycleName]] = None
    total_limit: Optional[int] = Field(default=None, ge=1)
    per_user_limit: Optional[int] = Field(default=None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_public: Optional[bool] = None
    first_time_user: Optional[bool] = None
    user_types: Optional[List[Literal["farmer", "admin", "support"]]] = None
    locations: Optional[List[LocationCondition]] = None
    farming_types: Optional[List[str]] = None
    campaign: Optional[str] = None
    category: Optional[str] = None


class VoucherResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[dict] = None
    discount_type: str
    value: float
    max_discount: Optional[float] = None
    min_order_amount: float
    applicable_plans: List[str] = []
    billing_cycles: List[str] = []
    total_limit: Optional[int] = None
    per_user_limit: int
    total_used: int
    remaining_usage: Optional[int] = None
    usage_percentage: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    is_public: bool
    first_time_user: bool
    user_types: List[str] = []
    locations: List[dict] = []
    farming_types: List[str] = []
    campaign: Optional[str] = None
    category: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("discount_type", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @field_validator("applicable_plans", "billing_cycles", "user_types", "farming_types", mode="before")
    @classmethod
    def string_list(cls, v):
        return [str(item) for item in (v or [])]

    @field_validator("locations", mode="before")
    @classmethod
    def location_list(cls, v):
        return v or []

    model_config = ConfigDict(from_attributes=True)


class VoucherListResponse(BaseModel):
    vouchers: List[VoucherResponse]
    total: int
    page: int
    limit: int
    total_pages: int

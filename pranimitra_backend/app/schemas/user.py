from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import List, Optional
from datetime import datetime


class UserSummary(BaseModel):
    id: int
    name: str
    phone_number: str
    email: Optional[EmailStr] = None
    role: str
    state: Optional[str] = None
    district: Optional[str] = None
    farming_types: List[str] = []
    preferred_language: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @field_validator("farming_types", mode="before")
    @classmethod
    def default_list(cls, v):
        return v or []

    model_config = ConfigDict(from_attributes=True)


class EntitlementResponse(BaseModel):
    status: str
    plan_id: Optional[int] = None
    plan_name: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_remaining: int
    call_limit: int
    calls_used: int
    calls_remaining: Optional[int] = None
    can_make_call: bool

    model_config = ConfigDict(from_attributes=True)


class SubscriptionResponse(BaseModel):
    user: UserSummary
    subscription: EntitlementResponse
    plan: Optional[dict] = None

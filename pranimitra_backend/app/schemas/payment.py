from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal

BillingCycleName = Literal["monthly", "yearly"]


class CreateOrderRequest(BaseModel):
    plan_id: int
    billing_cycle: BillingCycleName
    voucher_code: Optional[str] = Field(default=None, max_length=20)


class OrderPlan(BaseModel):
    id: int
    name: Optional[str]
    billing_cycle: str


class OrderDiscount(BaseModel):
    code: str
    amount: float
    original_amount: float


class SubscriptionWindow(BaseModel):
    start_date: datetime
    end_date: datetime


class CreateOrderResponse(BaseModel):
    order_id: str
    razorpay_order_id: str
    amount: float
    currency: str
    key_id: str
    plan: OrderPlan
    discount: Optional[OrderDiscount] = None
    subscription: SubscriptionWindow
    prefill: dict = {}


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class VerifyPaymentResponse(BaseModel):
    status: str
    message: str
    order_id: str
    payment_id: Optional[str] = None
    invoice_number: Optional[str] = None
    amount: float
    currency: str
    subscription: Optional[dict] = None


class RefundRequest(BaseModel):
    payment_id: int
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: Optional[str] = Field(default=None, max_length=200)


class RefundResponse(BaseModel):
    payment_id: int
    refund_id: str
    amount: float
    status: str
    full_refund: bool
    subscription_cancelled: bool


class PaymentHistoryItem(BaseModel):
    id: int
    order_id: str
    plan_id: int
    plan_name: Optional[str] = None
    amount: float
    discount_amount: float
    final_amount: float
    currency: str
    billing_cycle: str
    status: str
    payment_method: Optional[str] = None
    coupon_code: Optional[str] = None
    invoice_number: Optional[str] = None
    refund_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentHistoryItem]
    total: int
    page: int
    limit: int

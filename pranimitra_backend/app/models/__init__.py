from app.models.user import User, UserRole
from app.models.subscription import Plan, PlanType, Subscription, SubscriptionStatus
from app.models.voucher import Voucher, VoucherUsage, DiscountType
from app.models.payment import Payment, PaymentStatus, PaymentWebhookEvent, BillingCycle

__all__ = [
    "User",
    "UserRole",
    "Plan",
    "PlanType",
    "Subscription",
    "SubscriptionStatus",
    "Voucher",
    "VoucherUsage",
    "DiscountType",
    "Payment",
    "PaymentStatus",
    "PaymentWebhookEvent",
    "BillingCycle",
]

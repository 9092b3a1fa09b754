from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, JSON, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
from decimal import Decimal
import enum


class PaymentStatus(enum.Enum):
    CREATED = "created"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# A payment in one of these states can still be committed as paid
OPEN_STATUSES = (PaymentStatus.CREATED, PaymentStatus.PENDING)


class BillingCycle(enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


def _values(enum_cls):
    return [m.value for m in enum_cls]


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)

    order_id = Column(String, unique=True, nullable=False, index=True)
    razorpay_order_id = Column(String, nullable=False, index=True)
    razorpay_payment_id = Column(String, unique=True, nullable=True)
    razorpay_signature = Column(String, nullable=True)

    # Base (pre-discount) price; the remote order carries final_amount
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, default="INR")
    billing_cycle = Column(SQLEnum(BillingCycle, values_callable=_values), nullable=False)
    status = Column(SQLEnum(PaymentStatus, values_callable=_values), default=PaymentStatus.CREATED, nullable=False, index=True)
    payment_method = Column(String, nullable=True)  # card, netbanking, wallet, upi, emi

    # Discount snapshot, captured at order creation and never recomputed
    coupon_code = Column(String, nullable=True)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    discount_percentage = Column(Numeric(5, 2), default=0, nullable=False)

    gst = Column(Numeric(10, 2), default=0, nullable=False)
    total_tax = Column(Numeric(10, 2), default=0, nullable=False)

    # Subscription window computed at order creation, applied to the user on commit
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)
    subscription_auto_renewal = Column(Boolean, default=False)

    # Customer snapshot for invoicing
    customer_name = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_address = Column(JSON, nullable=True)

    invoice_number = Column(String, nullable=True, unique=True)
    invoice_date = Column(DateTime, nullable=True)
    invoice_url = Column(String(500), nullable=True)

    refund_id = Column(String, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_date = Column(DateTime, nullable=True)
    refund_reason = Column(String(200), nullable=True)
    refund_status = Column(String, nullable=True)  # pending, processed, failed

    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    source = Column(String, default="web")  # web, mobile, api
    notes = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    paid_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="payments")
    plan = relationship("Plan")
    webhook_events = relationship(
        "PaymentWebhookEvent",
        back_populates="payment",
        order_by="PaymentWebhookEvent.id",
    )

    @property
    def final_amount(self) -> Decimal:
        return (
            Decimal(self.amount or 0)
            - Decimal(self.discount_amount or 0)
            + Decimal(self.total_tax or 0)
        )

    def is_successful(self) -> bool:
        return self.status == PaymentStatus.PAID and bool(self.razorpay_payment_id)


def generate_invoice_number(payment_id: int, when) -> str:
    """PM<yy><mm><6-digit payment id>, e.g. PM2410000042."""
    return f"PM{when:%y%m}{payment_id:06d}"


class PaymentWebhookEvent(Base):
    """Append-only record of every verified webhook delivered for a payment."""

    __tablename__ = "payment_webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    event_data = Column(JSON, nullable=True)
    received_at = Column(DateTime, server_default=func.now())

    payment = relationship("Payment", back_populates="webhook_events")

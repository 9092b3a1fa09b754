"""
Payment reconciliation.

Two independent callers move a Payment out of "created"/"pending": the
client's verify request and Razorpay's webhook. They can arrive in any
order, concurrently, and more than once. All of them funnel into
commit_payment, whose UPDATE is conditioned on the payment still being
open. The first caller to flip it to "paid" also counts the voucher
redemption and overwrites the user's subscription, in the same
transaction. Everyone else matches zero rows and returns quietly.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core import config
from app.core.exceptions import (
    AmountMismatch,
    GatewayUnavailable,
    InvalidPaymentState,
    InvalidRefundAmount,
    InvalidSignature,
    InvalidWebhookSignature,
    MalformedWebhook,
    PaymentNotFound,
)
from app.models.payment import (
    OPEN_STATUSES,
    Payment,
    PaymentStatus,
    PaymentWebhookEvent,
    generate_invoice_number,
)
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User
from app.models.voucher import Voucher
from app.services.gateway import (
    GatewayError,
    GatewayPayment,
    GatewayRefund,
    RazorpayGateway,
    parse_payment_entity,
)
from app.services.vouchers import apply_usage, round_currency

logger = logging.getLogger(__name__)

PAYMENT_EVENTS = ("payment.captured", "payment.failed", "payment.authorized")


@dataclass
class ReconcileResult:
    payment: Payment
    committed: bool = False

    @property
    def status(self) -> PaymentStatus:
        return self.payment.status

    @property
    def awaiting_capture(self) -> bool:
        return self.payment.status in OPEN_STATUSES


@dataclass
class WebhookResult:
    event_type: str
    payment: Optional[Payment] = None
    committed: bool = False
    action: str = "ignored"


@dataclass
class RefundResult:
    payment: Payment
    refund: GatewayRefund
    full_refund: bool
    subscription_cancelled: bool


# State transitions

def commit_payment(
    db: Session,
    payment_id: int,
    razorpay_payment_id: str,
    payment_method: Optional[str] = None,
    signature: Optional[str] = None,
    now: datetime = None,
) -> bool:
    """
    Flip an open payment to paid and activate what it bought.

    Returns True if this call performed the transition, False if the
    payment had already left the open states (someone else committed).
    """
    now = now or datetime.utcnow()
    values = {
        Payment.status: PaymentStatus.PAID,
        Payment.razorpay_payment_id: razorpay_payment_id,
        Payment.paid_at: now,
        Payment.invoice_number: generate_invoice_number(payment_id, now),
        Payment.invoice_date: now,
    }
    if payment_method:
        values[Payment.payment_method] = payment_method
    if signature:
        values[Payment.razorpay_signature] = signature

    try:
        matched = db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.status.in_(OPEN_STATUSES),
        ).update(values, synchronize_session=False)

        if not matched:
            db.rollback()
            logger.info("Payment %s already reconciled, commit is a no-op", payment_id)
            return False

        payment = db.get(Payment, payment_id, populate_existing=True)

        if payment.coupon_code:
            voucher = db.query(Voucher).filter(Voucher.code == payment.coupon_code).first()
            if voucher:
                apply_usage(db, voucher.id, payment.user_id, now)
            else:
                logger.warning("Voucher %s on payment %s no longer exists", payment.coupon_code, payment_id)

        subscription = db.query(Subscription).filter(Subscription.user_id == payment.user_id).first()
        if not subscription:
            subscription = Subscription(user_id=payment.user_id)
            db.add(subscription)
        subscription.plan_id = payment.plan_id
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.start_date = payment.subscription_start_date
        subscription.end_date = payment.subscription_end_date
        subscription.auto_renewal = bool(payment.subscription_auto_renewal)
        subscription.last_payment_id = payment.id

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Payment %s committed as paid (razorpay %s), user %s subscribed to plan %s until %s",
        payment_id, razorpay_payment_id, payment.user_id, payment.plan_id, payment.subscription_end_date,
    )
    return True


def mark_failed(db: Session, payment_id: int, reason: str = None, razorpay_payment_id: str = None) -> bool:
    values = {Payment.status: PaymentStatus.FAILED}
    if reason:
        values[Payment.notes] = reason[:500]
    if razorpay_payment_id:
        values[Payment.razorpay_payment_id] = razorpay_payment_id

    matched = db.query(Payment).filter(
        Payment.id == payment_id,
        Payment.status.in_(OPEN_STATUSES),
    ).update(values, synchronize_session=False)
    db.commit()

    if matched:
        logger.info("Payment %s marked failed: %s", payment_id, reason)
    return bool(matched)


def mark_pending(db: Session, payment_id: int, razorpay_payment_id: str, payment_method: str = None) -> bool:
    values = {
        Payment.status: PaymentStatus.PENDING,
        Payment.razorpay_payment_id: razorpay_payment_id,
    }
    if payment_method:
        values[Payment.payment_method] = payment_method

    matched = db.query(Payment).filter(
        Payment.id == payment_id,
        Payment.status == PaymentStatus.CREATED,
    ).update(values, synchronize_session=False)
    db.commit()

    if matched:
        logger.info("Payment %s awaiting capture (razorpay %s)", payment_id, razorpay_payment_id)
    return bool(matched)


def _amount_matches(payment: Payment, remote: GatewayPayment) -> bool:
    if not config.ENFORCE_AMOUNT_MATCH or remote.amount is None:
        return True
    return round_currency(remote.amount) == round_currency(payment.final_amount)


def _reload(db: Session, payment: Payment) -> Payment:
    db.refresh(payment)
    return payment


# Path A: client verification

def verify_payment(
    db: Session,
    gateway: RazorpayGateway,
    user: User,
    razorpay_payment_id: str,
    razorpay_order_id: str,
    signature: str,
) -> ReconcileResult:
    payment = db.query(Payment).filter(
        Payment.user_id == user.id,
        Payment.razorpay_order_id == razorpay_order_id,
    ).first()

    # Failed, refunded or cancelled orders are indistinguishable from unknown ones
    if not payment or payment.status not in OPEN_STATUSES + (PaymentStatus.PAID,):
        logger.warning("Verify for unknown or closed order %s by user %s", razorpay_order_id, user.id)
        raise PaymentNotFound()

    if not gateway.verify_signature(razorpay_payment_id, razorpay_order_id, signature):
        logger.warning("Invalid payment signature for order %s (user %s)", razorpay_order_id, user.id)
        mark_failed(db, payment.id, "Invalid payment signature")
        raise InvalidSignature()

    if payment.status == PaymentStatus.PAID:
        logger.info("Order %s already paid, returning current state", razorpay_order_id)
        return ReconcileResult(payment=payment, committed=False)

    try:
        remote = gateway.fetch_payment(razorpay_payment_id)
    except GatewayError as e:
        raise GatewayUnavailable() from e

    if remote.order_id and remote.order_id != razorpay_order_id:
        logger.warning(
            "Payment %s belongs to order %s, not %s", razorpay_payment_id, remote.order_id, razorpay_order_id
        )
        mark_failed(db, payment.id, "Payment does not belong to this order")
        raise InvalidSignature()

    if not remote.is_captured:
        mark_pending(db, payment.id, razorpay_payment_id, remote.method)
        return ReconcileResult(payment=_reload(db, payment), committed=False)

    if not _amount_matches(payment, remote):
        logger.error(
            "Captured amount %s for order %s does not match expected %s",
            remote.amount, razorpay_order_id, payment.final_amount,
        )
        mark_failed(db, payment.id, f"Captured amount {remote.amount} does not match {payment.final_amount}")
        raise AmountMismatch()

    committed = commit_payment(
        db,
        payment.id,
        razorpay_payment_id,
        payment_method=remote.method,
        signature=signature,
    )
    return ReconcileResult(payment=_reload(db, payment), committed=committed)


# Path B: gateway webhook

def find_payment_for_event(db: Session, remote: GatewayPayment, by_order: bool = True) -> Optional[Payment]:
    payment = db.query(Payment).filter(Payment.razorpay_payment_id == remote.id).first()
    if payment is None and by_order and remote.order_id:
        # Webhook beat the client's verify call, so the payment id is not stored yet
        payment = db.query(Payment).filter(Payment.razorpay_order_id == remote.order_id).first()
    return payment


def record_webhook_event(db: Session, payment: Payment, event_type: str, event: dict) -> PaymentWebhookEvent:
    record = PaymentWebhookEvent(payment_id=payment.id, event_type=event_type, event_data=event)
    db.add(record)
    db.commit()
    return record


def handle_webhook(db: Session, gateway: RazorpayGateway, raw_body: bytes, signature: str) -> WebhookResult:
    if not gateway.verify_webhook_signature(raw_body, signature):
        logger.warning("Rejected webhook with invalid signature")
        raise InvalidWebhookSignature()

    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise MalformedWebhook() from e

    event_type = event.get("event", "")

    if event_type.startswith("subscription."):
        logger.info("Subscription webhook %s received, no local action", event_type)
        return WebhookResult(event_type=event_type, action="logged")

    if event_type not in PAYMENT_EVENTS:
        logger.info("Unhandled webhook event %s", event_type)
        return WebhookResult(event_type=event_type)

    entity = ((event.get("payload") or {}).get("payment") or {}).get("entity") or {}
    if not entity.get("id"):
        logger.warning("Webhook %s without a payment entity", event_type)
        return WebhookResult(event_type=event_type)

    remote = parse_payment_entity(entity)
    # A declined attempt must not close the order: checkout can retry it with a new payment id
    payment = find_payment_for_event(db, remote, by_order=event_type != "payment.failed")
    if not payment:
        logger.warning("Webhook %s for unknown payment %s (order %s)", event_type, remote.id, remote.order_id)
        return WebhookResult(event_type=event_type)

    record_webhook_event(db, payment, event_type, event)

    if event_type == "payment.captured":
        return _on_captured(db, payment, remote, event_type)
    if event_type == "payment.failed":
        reason = remote.error_description or remote.error_code or "Payment failed at gateway"
        changed = mark_failed(db, payment.id, reason, razorpay_payment_id=remote.id)
        return WebhookResult(event_type, _reload(db, payment), action="failed" if changed else "duplicate")

    changed = mark_pending(db, payment.id, remote.id, remote.method)
    return WebhookResult(event_type, _reload(db, payment), action="pending" if changed else "duplicate")


def _on_captured(db: Session, payment: Payment, remote: GatewayPayment, event_type: str) -> WebhookResult:
    if payment.status == PaymentStatus.PAID:
        logger.info("Duplicate capture webhook for payment %s", payment.id)
        return WebhookResult(event_type, payment, action="duplicate")

    if payment.status not in OPEN_STATUSES:
        logger.error(
            "Capture webhook for payment %s in state %s needs manual review", payment.id, payment.status.value
        )
        return WebhookResult(event_type, payment, action="ignored")

    if not _amount_matches(payment, remote):
        logger.error(
            "Captured amount %s for payment %s does not match expected %s",
            remote.amount, payment.id, payment.final_amount,
        )
        mark_failed(db, payment.id, f"Captured amount {remote.amount} does not match {payment.final_amount}")
        return WebhookResult(event_type, _reload(db, payment), action="failed")

    committed = commit_payment(db, payment.id, remote.id, payment_method=remote.method)
    return WebhookResult(
        event_type,
        _reload(db, payment),
        committed=committed,
        action="committed" if committed else "duplicate",
    )


# Refunds

def refund_payment(
    db: Session,
    gateway: RazorpayGateway,
    payment_id: int,
    amount=None,
    reason: str = None,
) -> RefundResult:
    payment = db.get(Payment, payment_id)
    if not payment:
        raise PaymentNotFound()
    if payment.status != PaymentStatus.PAID or not payment.razorpay_payment_id:
        raise InvalidPaymentState("Only paid payments can be refunded")

    charged = round_currency(payment.final_amount)
    refund_amount = round_currency(amount) if amount is not None else charged
    if refund_amount <= Decimal("0") or refund_amount > charged:
        raise InvalidRefundAmount()

    try:
        refund = gateway.create_refund(
            payment.razorpay_payment_id,
            refund_amount,
            notes={"reason": reason or "", "order_id": payment.order_id},
        )
    except GatewayError as e:
        raise GatewayUnavailable() from e

    now = datetime.utcnow()
    matched = db.query(Payment).filter(
        Payment.id == payment.id,
        Payment.status == PaymentStatus.PAID,
    ).update({
        Payment.status: PaymentStatus.REFUNDED,
        Payment.refund_id: refund.id,
        Payment.refund_amount: refund.amount,
        Payment.refund_date: refund.created_at or now,
        Payment.refund_reason: (reason or "")[:200] or None,
        Payment.refund_status: refund.status,
    }, synchronize_session=False)
    if not matched:
        db.rollback()
        logger.error("Refund %s issued but payment %s was no longer paid", refund.id, payment.id)
        raise InvalidPaymentState("Payment was refunded concurrently")

    # Compared against what was charged, not the base price: a discounted payment can never refund more
    full_refund = refund_amount >= charged
    cancelled = False
    if full_refund:
        subscription = db.query(Subscription).filter(
            Subscription.user_id == payment.user_id,
            Subscription.last_payment_id == payment.id,
        ).first()
        if subscription:
            subscription.status = SubscriptionStatus.CANCELLED
            cancelled = True

    db.commit()
    logger.info(
        "Payment %s refunded %s of %s (refund %s), subscription cancelled: %s",
        payment.id, refund_amount, charged, refund.id, cancelled,
    )
    return RefundResult(
        payment=_reload(db, payment),
        refund=refund,
        full_refund=full_refund,
        subscription_cancelled=cancelled,
    )

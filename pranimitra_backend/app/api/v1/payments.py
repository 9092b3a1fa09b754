import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.security import get_current_admin_user, get_current_user
from app.db.session import get_db
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    RefundRequest,
    RefundResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services.entitlements import get_entitlement
from app.services.gateway import RazorpayGateway, get_gateway
from app.services.notifications import send_subscription_activated
from app.services.orders import RequestMeta, create_order
from app.services.reconciliation import handle_webhook, refund_payment, verify_payment

logger = logging.getLogger(__name__)

router = APIRouter()


def request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        source=request.headers.get("x-source", "web"),
    )


def schedule_activation_notice(background_tasks: BackgroundTasks, payment: Payment) -> None:
    """Queue the notice to run after the response is sent."""
    background_tasks.add_task(send_subscription_activated, payment.user_id, payment.plan.name)


@router.post("/payments/create-order", response_model=CreateOrderResponse, tags=["Payments"])
def create_payment_order(
        body: CreateOrderRequest,
        request: Request,
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_gateway),
        current_user: User = Depends(get_current_user)
):
    """
    Create a Razorpay order for a plan purchase, applying an optional voucher.
    """
    summary = create_order(
        db,
        gateway,
        current_user,
        body.plan_id,
        body.billing_cycle,
        voucher_code=body.voucher_code,
        meta=request_meta(request),
    )
    return summary.as_dict(current_user.preferred_language or "english")


@router.post("/payments/verify", response_model=VerifyPaymentResponse, tags=["Payments"])
def verify_razorpay_payment(
        body: VerifyPaymentRequest,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_gateway),
        current_user: User = Depends(get_current_user)
):
    """
    Verify the checkout callback and activate the subscription once the payment is captured.
    """
    result = verify_payment(
        db,
        gateway,
        current_user,
        body.razorpay_payment_id,
        body.razorpay_order_id,
        body.razorpay_signature,
    )
    payment = result.payment

    if result.committed:
        schedule_activation_notice(background_tasks, payment)

    if result.awaiting_capture:
        status, message = "pending", "Payment is awaiting capture"
    else:
        status, message = "success", "Payment verified and subscription activated"

    db.refresh(current_user)
    return VerifyPaymentResponse(
        status=status,
        message=message,
        order_id=payment.order_id,
        payment_id=payment.razorpay_payment_id,
        invoice_number=payment.invoice_number,
        amount=float(payment.final_amount),
        currency=payment.currency,
        subscription=get_entitlement(current_user).as_dict() if payment.status == PaymentStatus.PAID else None,
    )


@router.post("/payments/webhook", tags=["Payments"])
async def razorpay_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_gateway)
):
    """
    Razorpay webhook. The signature covers the raw body, so it is read unparsed.
    """
    payload = await request.body()
    signature = request.headers.get("x-razorpay-signature", "")

    result = await run_in_threadpool(handle_webhook, db, gateway, payload, signature)
    if result.committed:
        schedule_activation_notice(background_tasks, result.payment)

    return {"status": "ok", "event": result.event_type, "action": result.action}


@router.get("/payments/methods", tags=["Payments"])
def get_payment_methods(gateway: RazorpayGateway = Depends(get_gateway)):
    """
    Get available payment methods
    """
    return {"provider": "razorpay", "currencies": ["INR"], "methods": gateway.payment_methods()}


@router.post("/payments/refund", response_model=RefundResponse, tags=["Payments"])
def refund(
        body: RefundRequest,
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_gateway),
        admin: User = Depends(get_current_admin_user)
):
    """
    Refund a paid payment, fully or partially. A full refund cancels the subscription it bought.
    """
    logger.info("Admin %s requested refund of payment %s", admin.id, body.payment_id)
    result = refund_payment(db, gateway, body.payment_id, body.amount, body.reason)
    return RefundResponse(
        payment_id=result.payment.id,
        refund_id=result.refund.id,
        amount=float(result.refund.amount),
        status=result.payment.status.value,
        full_refund=result.full_refund,
        subscription_cancelled=result.subscription_cancelled,
    )

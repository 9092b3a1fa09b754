"""
Razorpay gateway adapter.

Everything the payment services need from Razorpay goes through
RazorpayGateway: order creation, payment fetch, refunds and the two
signature schemes. Amounts cross this boundary in rupees (Decimal);
conversion to and from paise happens here only.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import razorpay

from app.core import config

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {
    "card": {"enabled": True, "name": "Credit/Debit Card"},
    "netbanking": {"enabled": True, "name": "Net Banking"},
    "wallet": {"enabled": True, "name": "Wallet"},
    "upi": {"enabled": True, "name": "UPI"},
    "emi": {"enabled": True, "name": "EMI"},
}


class GatewayError(Exception):
    """Any failure talking to the payment provider."""


@dataclass
class RemoteOrder:
    id: str
    amount: Decimal
    currency: str
    receipt: str
    status: str
    notes: dict = field(default_factory=dict)


@dataclass
class GatewayPayment:
    id: str
    status: str
    order_id: Optional[str]
    method: Optional[str]
    amount: Optional[Decimal]
    currency: Optional[str] = None
    captured: bool = False
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def is_captured(self) -> bool:
        return self.status == "captured" or self.captured


@dataclass
class GatewayRefund:
    id: str
    payment_id: str
    amount: Decimal
    status: str
    created_at: Optional[datetime] = None


def to_paise(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_paise(paise) -> Decimal:
    return (Decimal(paise) / 100).quantize(Decimal("0.01"))


def parse_payment_entity(entity: dict) -> GatewayPayment:
    """Build a GatewayPayment from a Razorpay payment entity (API or webhook)."""
    amount = entity.get("amount")
    return GatewayPayment(
        id=entity["id"],
        status=entity.get("status", ""),
        order_id=entity.get("order_id"),
        method=entity.get("method"),
        amount=from_paise(amount) if amount is not None else None,
        currency=entity.get("currency"),
        captured=bool(entity.get("captured")),
        error_code=entity.get("error_code"),
        error_description=entity.get("error_description"),
    )


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, webhook_secret: str = ""):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.is_mock = not key_id or key_id == "dummy"
        if self.is_mock and config.ENVIRONMENT == "production":
            raise GatewayError("Razorpay credentials are required in production")
        # Signature checks go through the SDK even in mock mode; only API calls are faked
        self.client = razorpay.Client(auth=(key_id or "dummy", key_secret or "dummy"))
        if self.is_mock:
            logger.warning("Razorpay credentials not configured, using mock gateway")

    @property
    def public_key(self) -> str:
        return "dummy_key_id" if self.is_mock else self.key_id

    def create_remote_order(self, amount, currency: str, receipt: str, notes: dict = None) -> RemoteOrder:
        data = {
            "amount": to_paise(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        if self.is_mock:
            order = dict(data, id=f"order_mock_{int(time.time() * 1000)}{uuid.uuid4().hex[:6]}", status="created")
        else:
            try:
                order = self.client.order.create(data=data)
            except Exception as e:
                logger.error("Razorpay create order failed for receipt %s: %s", receipt, e)
                raise GatewayError(str(e)) from e

        return RemoteOrder(
            id=order["id"],
            amount=from_paise(order["amount"]),
            currency=order.get("currency", currency),
            receipt=order.get("receipt", receipt),
            status=order.get("status", "created"),
            notes=order.get("notes") or {},
        )

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        if self.is_mock:
            return GatewayPayment(id=payment_id, status="captured", order_id=None, method="upi", amount=None, captured=True)
        try:
            entity = self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error("Razorpay fetch payment %s failed: %s", payment_id, e)
            raise GatewayError(str(e)) from e
        return parse_payment_entity(entity)

    def create_refund(self, payment_id: str, amount, notes: dict = None) -> GatewayRefund:
        data = {"amount": to_paise(amount), "notes": notes or {}}
        if self.is_mock:
            refund = {
                "id": f"rfnd_mock_{int(time.time() * 1000)}",
                "payment_id": payment_id,
                "amount": data["amount"],
                "status": "processed",
                "created_at": int(time.time()),
            }
        else:
            try:
                refund = self.client.payment.refund(payment_id, data)
            except Exception as e:
                logger.error("Razorpay refund for %s failed: %s", payment_id, e)
                raise GatewayError(str(e)) from e

        created_at = refund.get("created_at")
        return GatewayRefund(
            id=refund["id"],
            payment_id=refund.get("payment_id", payment_id),
            amount=from_paise(refund["amount"]),
            status=refund.get("status", "processed"),
            created_at=datetime.utcfromtimestamp(created_at) if created_at else None,
        )

    def verify_signature(self, payment_id: str, order_id: str, signature: str) -> bool:
        """Checkout callback signature: HMAC-SHA256 of "order_id|payment_id"."""
        if self.is_mock:
            logger.warning("Mock gateway: skipping signature verification for %s", payment_id)
            return True
        if not signature:
            return False
        params_dict = {
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        }
        try:
            self.client.utility.verify_payment_signature(params_dict)
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        """X-Razorpay-Signature: HMAC-SHA256 of the raw request body."""
        if not self.webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET is not set, rejecting webhook")
            return False
        if not signature:
            return False
        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            return False
        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def payment_methods(self) -> dict:
        return PAYMENT_METHODS


_gateway: Optional[RazorpayGateway] = None


def get_gateway() -> RazorpayGateway:
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway(
            config.RAZORPAY_KEY_ID,
            config.RAZORPAY_KEY_SECRET,
            config.RAZORPAY_WEBHOOK_SECRET,
        )
    return _gateway

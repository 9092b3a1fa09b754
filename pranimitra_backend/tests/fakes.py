import hashlib
import hmac
import itertools
from datetime import datetime
from decimal import Decimal

from app.services.gateway import (
    GatewayError,
    GatewayPayment,
    GatewayRefund,
    RazorpayGateway,
    RemoteOrder,
    to_paise,
)


class FakeGateway(RazorpayGateway):
    """
    In-memory Razorpay. Network calls are replaced; both signature checks
    still go through the razorpay SDK with known secrets.
    """

    def __init__(self, key_secret="test_key_secret", webhook_secret="test_webhook_secret"):
        super().__init__("rzp_test_fake", key_secret, webhook_secret)
        self.orders = []
        self.payments = {}
        self.refunds = []
        self.fail_orders = False
        self.fail_fetch = False
        self.fail_refunds = False
        self._ids = itertools.count(1)

    def create_remote_order(self, amount, currency, receipt, notes=None):
        if self.fail_orders:
            raise GatewayError("gateway unavailable")
        order = RemoteOrder(
            id=f"order_fake{next(self._ids)}",
            amount=Decimal(amount),
            currency=currency,
            receipt=receipt,
            status="created",
            notes=notes or {},
        )
        self.orders.append(order)
        return order

    def add_payment(self, payment_id, order_id, amount, status="captured", method="upi"):
        self.payments[payment_id] = GatewayPayment(
            id=payment_id,
            status=status,
            order_id=order_id,
            method=method,
            amount=Decimal(amount) if amount is not None else None,
            currency="INR",
            captured=status == "captured",
        )
        return self.payments[payment_id]

    def fetch_payment(self, payment_id):
        if self.fail_fetch or payment_id not in self.payments:
            raise GatewayError(f"cannot fetch {payment_id}")
        return self.payments[payment_id]

    def create_refund(self, payment_id, amount, notes=None):
        if self.fail_refunds:
            raise GatewayError("refund failed")
        refund = GatewayRefund(
            id=f"rfnd_fake{next(self._ids)}",
            payment_id=payment_id,
            amount=Decimal(amount),
            status="processed",
            created_at=datetime.utcnow(),
        )
        self.refunds.append(refund)
        return refund

    def sign(self, order_id, payment_id):
        return razorpay_signature(self.key_secret, f"{order_id}|{payment_id}".encode())

    def sign_webhook(self, raw_body: bytes):
        return razorpay_signature(self.webhook_secret, raw_body)


def razorpay_signature(secret: str, message: bytes) -> str:
    """What Razorpay sends: hex HMAC-SHA256 keyed with the account or webhook secret."""
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def payment_event(event, payment_id, order_id, amount, status="captured", method="upi", **extra):
    """A Razorpay webhook body for a payment.* event."""
    entity = {
        "id": payment_id,
        "entity": "payment",
        "amount": to_paise(amount),
        "currency": "INR",
        "status": status,
        "order_id": order_id,
        "method": method,
        "captured": status == "captured",
    }
    entity.update(extra)
    return {
        "entity": "event",
        "event": event,
        "payload": {"payment": {"entity": entity}},
        "created_at": int(datetime.utcnow().timestamp()),
    }

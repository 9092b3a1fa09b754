"""
Domain errors raised by the payment services.

Routes do not catch these; app.main renders them as {"detail": message}
with the status code carried by the error class.
"""


class PaymentError(Exception):
    status_code = 400
    default_message = "Payment request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PlanNotFound(PaymentError):
    status_code = 404
    default_message = "Plan not found or not available"


class VoucherInvalid(PaymentError):
    status_code = 404
    default_message = "Invalid voucher code"


class VoucherIneligible(PaymentError):
    status_code = 400
    default_message = "Voucher is not applicable"


class VoucherNotApplicable(PaymentError):
    status_code = 400
    default_message = "Voucher cannot be applied to this order"


class PaymentNotFound(PaymentError):
    status_code = 404
    default_message = "Payment record not found"


class InvalidSignature(PaymentError):
    status_code = 400
    default_message = "Invalid payment signature"


class AmountMismatch(PaymentError):
    status_code = 400
    default_message = "Captured amount does not match the order amount"


class InvalidWebhookSignature(PaymentError):
    status_code = 400
    default_message = "Invalid webhook signature"


class InvalidPaymentState(PaymentError):
    status_code = 400
    default_message = "Payment is not in a valid state for this operation"


class GatewayUnavailable(PaymentError):
    status_code = 502
    default_message = "Payment gateway is unavailable, please try again"


class InvalidRefundAmount(PaymentError):
    status_code = 400
    default_message = "Refund amount must be positive and not exceed the amount paid"


class MalformedWebhook(PaymentError):
    status_code = 400
    default_message = "Webhook payload is not valid JSON"

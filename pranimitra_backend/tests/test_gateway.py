import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from app.services.gateway import (
    GatewayError,
    RazorpayGateway,
    from_paise,
    parse_payment_entity,
    to_paise,
)

from tests.fakes import razorpay_signature


class AmountConversionTestCase(unittest.TestCase):

    def test_to_paise(self):
        self.assertEqual(to_paise(Decimal("149.50")), 14950)
        self.assertEqual(to_paise(Decimal("0.005")), 1)
        self.assertEqual(to_paise(299), 29900)

    def test_from_paise(self):
        self.assertEqual(from_paise(14950), Decimal("149.50"))
        self.assertEqual(from_paise(1), Decimal("0.01"))


class SignatureTestCase(unittest.TestCase):

    def setUp(self):
        self.gateway = RazorpayGateway("rzp_test_key", "key_secret", "hook_secret")

    def test_checkout_signature(self):
        signature = razorpay_signature("key_secret", b"order_1|pay_1")
        self.assertTrue(self.gateway.verify_signature("pay_1", "order_1", signature))
        self.assertFalse(self.gateway.verify_signature("pay_2", "order_1", signature))
        self.assertFalse(self.gateway.verify_signature("pay_1", "order_1", signature.upper()))
        self.assertFalse(self.gateway.verify_signature("pay_1", "order_1", ""))

    def test_webhook_signature(self):
        body = b'{"event":"payment.captured"}'
        signature = razorpay_signature("hook_secret", body)
        self.assertTrue(self.gateway.verify_webhook_signature(body, signature))
        self.assertFalse(self.gateway.verify_webhook_signature(body + b"\n", signature))
        self.assertFalse(self.gateway.verify_webhook_signature(body, None))

    def test_webhook_signature_without_secret(self):
        gateway = RazorpayGateway("rzp_test_key", "key_secret", "")
        self.assertFalse(gateway.verify_webhook_signature(b"{}", razorpay_signature("", b"{}")))

    def test_webhook_body_that_is_not_utf8(self):
        body = b"\xff\xfe"
        self.assertFalse(self.gateway.verify_webhook_signature(body, razorpay_signature("hook_secret", body)))

    def test_checkout_signature_uses_sdk(self):
        self.gateway.client = MagicMock()
        self.assertTrue(self.gateway.verify_signature("pay_1", "order_1", "sig"))
        self.gateway.client.utility.verify_payment_signature.assert_called_once_with({
            "razorpay_order_id": "order_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "sig",
        })


class MockGatewayTestCase(unittest.TestCase):

    def setUp(self):
        self.gateway = RazorpayGateway("dummy", "dummy")

    def test_mock_mode(self):
        self.assertTrue(self.gateway.is_mock)
        self.assertIsNotNone(self.gateway.client)
        self.assertEqual(self.gateway.public_key, "dummy_key_id")
        self.assertTrue(RazorpayGateway("", "").is_mock)

    def test_mock_order(self):
        order = self.gateway.create_remote_order(Decimal("149.50"), "INR", receipt="PM_X")
        self.assertTrue(order.id.startswith("order_mock_"))
        self.assertEqual(order.amount, Decimal("149.50"))
        self.assertEqual(order.receipt, "PM_X")

    def test_mock_payment_is_captured_without_amount(self):
        payment = self.gateway.fetch_payment("pay_1")
        self.assertTrue(payment.is_captured)
        self.assertIsNone(payment.amount)

    def test_mock_accepts_any_checkout_signature(self):
        self.assertTrue(self.gateway.verify_signature("pay_1", "order_1", "anything"))

    @patch("app.services.gateway.config.ENVIRONMENT", "production")
    def test_mock_mode_refused_in_production(self):
        with self.assertRaises(GatewayError):
            RazorpayGateway("dummy", "dummy")
        with self.assertRaises(GatewayError):
            RazorpayGateway("", "")
        self.assertFalse(RazorpayGateway("rzp_live_key", "secret", "hook").is_mock)

    def test_mock_refund(self):
        refund = self.gateway.create_refund("pay_1", Decimal("99.99"))
        self.assertEqual(refund.amount, Decimal("99.99"))
        self.assertEqual(refund.status, "processed")
        self.assertIsNotNone(refund.created_at)


class RazorpayClientTestCase(unittest.TestCase):

    def setUp(self):
        self.gateway = RazorpayGateway("rzp_test_key", "key_secret", "hook_secret")
        self.gateway.client = MagicMock()

    def test_create_order_sends_paise(self):
        self.gateway.client.order.create.return_value = {
            "id": "order_abc", "amount": 14950, "currency": "INR", "receipt": "PM_X", "status": "created",
        }
        order = self.gateway.create_remote_order(Decimal("149.50"), "INR", "PM_X", notes={"plan_id": "1"})

        self.gateway.client.order.create.assert_called_once_with(data={
            "amount": 14950, "currency": "INR", "receipt": "PM_X", "notes": {"plan_id": "1"},
        })
        self.assertEqual(order.id, "order_abc")
        self.assertEqual(order.amount, Decimal("149.50"))

    def test_create_order_failure(self):
        self.gateway.client.order.create.side_effect = Exception("503 Service Unavailable")
        with self.assertRaises(GatewayError):
            self.gateway.create_remote_order(Decimal("1"), "INR", "PM_X")

    def test_fetch_payment(self):
        self.gateway.client.payment.fetch.return_value = {
            "id": "pay_1", "status": "authorized", "order_id": "order_abc",
            "method": "netbanking", "amount": 29900, "captured": False,
        }
        payment = self.gateway.fetch_payment("pay_1")

        self.assertFalse(payment.is_captured)
        self.assertEqual(payment.amount, Decimal("299.00"))
        self.assertEqual(payment.method, "netbanking")

    def test_fetch_payment_failure(self):
        self.gateway.client.payment.fetch.side_effect = Exception("timeout")
        with self.assertRaises(GatewayError):
            self.gateway.fetch_payment("pay_1")

    def test_refund(self):
        self.gateway.client.payment.refund.return_value = {
            "id": "rfnd_1", "payment_id": "pay_1", "amount": 10000, "status": "processed", "created_at": 1716200000,
        }
        refund = self.gateway.create_refund("pay_1", Decimal("100"), notes={"reason": "duplicate"})

        self.gateway.client.payment.refund.assert_called_once_with(
            "pay_1", {"amount": 10000, "notes": {"reason": "duplicate"}}
        )
        self.assertEqual(refund.amount, Decimal("100.00"))


class ParsePaymentEntityTestCase(unittest.TestCase):

    def test_captured_flag_counts_as_captured(self):
        payment = parse_payment_entity({"id": "pay_1", "status": "authorized", "captured": True, "amount": 100})
        self.assertTrue(payment.is_captured)
        self.assertEqual(payment.amount, Decimal("1.00"))

    def test_error_fields(self):
        payment = parse_payment_entity({
            "id": "pay_1", "status": "failed", "error_code": "GATEWAY_ERROR", "error_description": "Bank down",
        })
        self.assertFalse(payment.is_captured)
        self.assertIsNone(payment.amount)
        self.assertEqual(payment.error_description, "Bank down")

import hashlib
import hmac
import json

import httpx
import pytest

from application.dtos.payments import ContactInfo
from core.settings import PaymentRetry, RazorpayConfig
from domain.common.exceptions import DomainValidationException
from domain.payment.exceptions import PaymentGatewayError, PaymentGatewayTimeout, PaymentSignatureError
from infrastructure.external.payments.razorpay_client import RazorpayClient, to_minor_units


CONFIG = RazorpayConfig(
    key_id="rzp_test_key",
    key_secret="key_secret",
    webhook_secret="hook_secret",
    application_url="https://assess.example.com/",
    retry=PaymentRetry(max=2, base_backoff=0.01),
)
CONTACT = ContactInfo(name="Asha Rao", email="asha@example.com", phone="9876543210")


def _sign(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def _client(handler) -> RazorpayClient:
    return RazorpayClient(CONFIG, transport=httpx.MockTransport(handler))


def test_prepare_order_converts_to_paise():
    client = RazorpayClient(CONFIG)
    req = client.prepare_order("bkg_1", "499.50", "Booking for Python Basics", CONTACT, {"testId": "1"})
    assert req.amount_minor == 49950
    assert req.currency == "INR"
    assert req.notes["productInfo"] == "Booking for Python Basics"
    assert req.notes["customerEmail"] == "asha@example.com"
    assert req.notes["testId"] == "1"


@pytest.mark.parametrize("amount", ["-1", "abc", "NaN", True, None])
def test_prepare_order_rejects_invalid_amounts(amount):
    client = RazorpayClient(CONFIG)
    with pytest.raises(DomainValidationException):
        client.prepare_order("bkg_1", amount, "x", CONTACT)


def test_minor_units_truncate_fractions_of_a_paisa():
    assert to_minor_units("10.009") == 1000
    assert to_minor_units(0) == 0


def test_transaction_id_fits_receipt_limit():
    txn = RazorpayClient(CONFIG).generate_transaction_id("cert")
    assert txn.startswith("cert_")
    assert len(txn) <= 40


def test_payment_signature_is_case_insensitive():
    client = RazorpayClient(CONFIG)
    sig = _sign("key_secret", "order_1|pay_1")
    assert client.verify_payment_signature("order_1", "pay_1", sig)
    assert client.verify_payment_signature("order_1", "pay_1", sig.upper())
    assert not client.verify_payment_signature("order_1", "pay_2", sig)
    assert not client.verify_payment_signature("order_1", "pay_1", None)
    assert not client.verify_payment_signature("order_1", "pay_1", f"  {sig}\n")
    assert not client.verify_payment_signature("order_1", "pay_1", sig + " ")


def test_webhook_signature_uses_timestamp_and_webhook_secret():
    client = RazorpayClient(CONFIG)
    payload = '{"event":"payment.captured"}'
    sig = _sign("hook_secret", f"1700000000|{payload}")
    assert client.verify_webhook_signature(payload, sig, "1700000000")
    assert not client.verify_webhook_signature(payload, sig, "1700000001")
    assert not client.verify_webhook_signature(payload, f"{sig}\n", "1700000000")


@pytest.mark.asyncio
async def test_create_order_posts_receipt_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization", "")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_ABC", "status": "created"})

    client = _client(handler)
    req = client.prepare_order("bkg_1", "499.50", "Booking", CONTACT)
    assert await client.create_order(req) == "order_ABC"
    await client.aclose()

    assert seen["url"] == "https://api.razorpay.com/v1/orders"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"]["amount"] == 49950
    assert seen["body"]["receipt"] == "bkg_1"


@pytest.mark.asyncio
async def test_create_order_error_carries_raw_body():
    def handler(request):
        return httpx.Response(400, text='{"error":{"description":"bad currency"}}')

    client = _client(handler)
    req = client.prepare_order("bkg_1", "10", "Booking", CONTACT)
    with pytest.raises(PaymentGatewayError) as exc_info:
        await client.create_order(req)
    assert exc_info.value.details["status_code"] == 400
    assert "bad currency" in exc_info.value.details["body"]


@pytest.mark.asyncio
async def test_create_order_timeout_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler)
    req = client.prepare_order("bkg_1", "10", "Booking", CONTACT)
    with pytest.raises(PaymentGatewayTimeout):
        await client.create_order(req)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_fetch_payment_retries_transport_errors():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, json={"id": "pay_1", "order_id": "order_1", "status": "captured"})

    client = _client(handler)
    status = await client.fetch_payment("pay_1")
    assert len(calls) == 2
    assert status.order_id == "order_1"
    assert status.is_success


@pytest.mark.asyncio
async def test_fetch_order_payments_maps_statuses():
    def handler(request):
        assert request.url.path == "/v1/orders/order_1/payments"
        return httpx.Response(200, json={"items": [
            {"id": "pay_1", "order_id": "order_1", "status": "failed", "error_description": "declined"},
            {"id": "pay_2", "order_id": "order_1", "status": "authorized"},
        ]})

    payments = await _client(handler).fetch_order_payments("order_1")
    assert [p.internal_status for p in payments] == ["failed", "completed"]
    assert payments[0].error_description == "declined"


def test_parse_webhook_extracts_payment_entity():
    client = RazorpayClient(CONFIG)
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_1", "status": "captured"}}},
    }).encode()
    sig = _sign("hook_secret", f"1700000000|{body.decode()}")
    event = client.parse_webhook(
        {"X-Razorpay-Signature": sig, "X-Razorpay-Event-Time": "1700000000", "X-Razorpay-Event-Id": "evt_1"},
        body,
    )
    assert event.id == "evt_1"
    assert event.type == "payment.captured"
    assert (event.payment_id, event.order_id) == ("pay_1", "order_1")


def test_parse_webhook_rejects_bad_signature():
    client = RazorpayClient(CONFIG)
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({}, b"{}")
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"X-Razorpay-Signature": "deadbeef", "X-Razorpay-Event-Time": "1"}, b"{}")


def test_checkout_options_point_back_to_the_app():
    client = RazorpayClient(CONFIG)
    req = client.prepare_order("bkg_1", "499.50", "Booking", CONTACT)
    options = client.checkout_options(req, "order_1", CONTACT)
    assert options.key == "rzp_test_key"
    assert options.amount == 49950
    assert options.callback_url == "https://assess.example.com/api/v1/payments/razorpay/callback"
    assert options.prefill["contact"] == "9876543210"

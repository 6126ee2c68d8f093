"""
Razorpay Orders/Payments adapter over the REST API (httpx).

- Orders are created with ``POST /v1/orders`` using Basic auth (key id/secret).
  Creation is never retried: a retry could open a second order for the same receipt.
- Payment signature is HMAC-SHA256(key_secret, "order_id|payment_id") in hex.
- Webhook signature is HMAC-SHA256(webhook_secret, "timestamp|payload") in hex,
  carried in ``X-Razorpay-Signature`` / ``X-Razorpay-Event-Time``.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Optional, Union

import httpx

from application.dtos.payments import (
    CheckoutOptions,
    ContactInfo,
    OrderRequest,
    PaymentStatusResult,
    WebhookEvent,
)
from core.logging_config import get_logger
from core.settings import RazorpayConfig
from domain.common.exceptions import DomainValidationException
from domain.payment.exceptions import (
    PaymentGatewayError,
    PaymentGatewayTimeout,
    PaymentSignatureError,
)
from infrastructure.external.payments.base import BasePaymentClient


logger = get_logger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"
EVENT_TIME_HEADER = "x-razorpay-event-time"
EVENT_ID_HEADER = "x-razorpay-event-id"

RECEIPT_MAX_LENGTH = 40
NOTE_MAX_LENGTH = 256


def to_minor_units(amount: Union[str, Decimal, int, float]) -> int:
    """Convert a major-unit amount to paise, truncating below one paisa."""
    if isinstance(amount, bool):
        raise DomainValidationException("Amount must be numeric", field="amount")
    try:
        value = Decimal(str(amount).strip()) if not isinstance(amount, Decimal) else amount
    except (InvalidOperation, ValueError):
        raise DomainValidationException(
            f"Amount must be numeric: {amount!r}", field="amount"
        ) from None
    if not value.is_finite():
        raise DomainValidationException(f"Amount must be numeric: {amount!r}", field="amount")
    if value < 0:
        raise DomainValidationException(f"Amount must not be negative: {amount}", field="amount")
    return int((value * 100).to_integral_value(rounding=ROUND_DOWN))


def _hmac_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _lower_headers(headers: dict[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in (headers or {}).items()}


class RazorpayClient(BasePaymentClient):
    provider = "razorpay"

    def __init__(self, config: RazorpayConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(timeouts=config.timeouts, retry=config.retry, transport=transport)
        self.config = config

    @property
    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.config.key_id, self.config.key_secret)

    def _url(self, path: str) -> str:
        return f"{self.config.api_base.rstrip('/')}/{path.lstrip('/')}"

    # Orders

    def generate_transaction_id(self, prefix: str) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return f"{prefix}_{stamp}_{secrets.token_hex(6)}"[:RECEIPT_MAX_LENGTH]

    def prepare_order(
        self,
        transaction_id: str,
        amount: Union[str, Decimal, int, float],
        description: str,
        contact: ContactInfo,
        extra_notes: Optional[dict[str, str]] = None,
    ) -> OrderRequest:
        amount_minor = to_minor_units(amount)
        notes = {
            "productInfo": description,
            "customerName": contact.name,
            "customerEmail": contact.email,
            "customerPhone": contact.phone or "",
        }
        for key, value in (extra_notes or {}).items():
            notes[key] = str(value)
        notes = {k: v[:NOTE_MAX_LENGTH] for k, v in notes.items()}
        return OrderRequest(
            transaction_id=transaction_id,
            amount_minor=amount_minor,
            currency=self.config.currency,
            description=description,
            notes=notes,
        )

    async def create_order(self, req: OrderRequest) -> str:
        body = {
            "amount": req.amount_minor,
            "currency": req.currency,
            "receipt": req.transaction_id,
            "notes": req.notes,
        }
        self._log("razorpay_order_create_request", transaction_id=req.transaction_id, amount=req.amount_minor)
        try:
            async with self.client() as client:
                resp = await client.post(self._url("orders"), json=body, auth=self._auth)
        except httpx.TimeoutException as exc:
            raise PaymentGatewayTimeout(
                "Timed out creating provider order",
                provider=self.provider,
                details={"transaction_id": req.transaction_id},
            ) from exc
        except httpx.TransportError as exc:
            raise PaymentGatewayError(
                f"Could not reach payment provider: {exc}",
                provider=self.provider,
            ) from exc

        if not resp.is_success:
            logger.warning(
                "razorpay_order_create_failed",
                transaction_id=req.transaction_id,
                status_code=resp.status_code,
            )
            raise PaymentGatewayError(
                f"Order creation failed: {resp.text}",
                provider=self.provider,
                status_code=resp.status_code,
                body=resp.text,
            )
        order_id = self._json(resp).get("id")
        if not order_id:
            raise PaymentGatewayError(
                "Order response missing id",
                provider=self.provider,
                status_code=resp.status_code,
                body=resp.text,
            )
        self._log("razorpay_order_created", transaction_id=req.transaction_id, order_id=order_id)
        return str(order_id)

    # Payments

    async def fetch_payment(self, payment_id: str) -> PaymentStatusResult:
        data = await self._get(f"payments/{payment_id}")
        return self._to_status(data)

    async def fetch_order_payments(self, order_id: str) -> list[PaymentStatusResult]:
        data = await self._get(f"orders/{order_id}/payments")
        return [self._to_status(item) for item in data.get("items") or []]

    async def _get(self, path: str) -> dict[str, Any]:
        async def call() -> httpx.Response:
            async with self.client() as client:
                return await client.get(self._url(path), auth=self._auth)

        try:
            resp = await self._retry(call)
        except httpx.TimeoutException as exc:
            raise PaymentGatewayTimeout(f"Timed out fetching {path}", provider=self.provider) from exc
        except httpx.TransportError as exc:
            raise PaymentGatewayError(f"Could not reach payment provider: {exc}", provider=self.provider) from exc
        if not resp.is_success:
            raise PaymentGatewayError(
                f"Provider returned {resp.status_code} for {path}",
                provider=self.provider,
                status_code=resp.status_code,
                body=resp.text,
            )
        return self._json(resp)

    def _json(self, resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            raise PaymentGatewayError(
                "Malformed provider response",
                provider=self.provider,
                status_code=resp.status_code,
                body=resp.text,
            ) from None
        if not isinstance(data, dict):
            raise PaymentGatewayError("Malformed provider response", provider=self.provider, body=resp.text)
        return data

    def _to_status(self, data: dict[str, Any]) -> PaymentStatusResult:
        status = str(data.get("status") or "unknown")
        return PaymentStatusResult(
            payment_id=str(data.get("id") or ""),
            order_id=data.get("order_id"),
            status=status,
            internal_status=self._map_status(status),
            error_description=data.get("error_description"),
        )

    # Signatures

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            expected = _hmac_hex(self.config.key_secret, f"{order_id}|{payment_id}")
            return hmac.compare_digest(expected, signature.lower())
        except Exception:
            # malformed input is a failed check, never an error
            return False

    def verify_webhook_signature(self, payload: str, signature: str, timestamp: Optional[str] = None) -> bool:
        if not self.config.webhook_secret:
            logger.warning("razorpay_webhook_secret_missing")
            return False
        try:
            ts = timestamp or str(int(time.time()))
            expected = _hmac_hex(self.config.webhook_secret, f"{ts}|{payload}")
            return hmac.compare_digest(expected, signature.lower())
        except Exception:
            return False

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:
        h = _lower_headers(headers)
        signature = h.get(SIGNATURE_HEADER)
        if not signature:
            raise PaymentSignatureError("Missing X-Razorpay-Signature header", provider=self.provider)
        payload = body.decode("utf-8", errors="replace")
        if not self.verify_webhook_signature(payload, signature, h.get(EVENT_TIME_HEADER)):
            raise PaymentSignatureError("Invalid webhook signature", provider=self.provider)
        try:
            event = json.loads(payload)
        except ValueError:
            raise DomainValidationException("Webhook body is not valid JSON", field="body") from None
        if not isinstance(event, dict):
            raise DomainValidationException("Webhook body must be a JSON object", field="body")

        event_type = str(event.get("event") or "")
        payment = ((event.get("payload") or {}).get("payment") or {})
        entity = payment.get("entity", payment) if isinstance(payment, dict) else {}
        payment_id = entity.get("id")
        return WebhookEvent(
            id=str(h.get(EVENT_ID_HEADER) or f"{event_type}:{payment_id}"),
            type=event_type,
            provider=self.provider,
            payment_id=payment_id,
            order_id=entity.get("order_id"),
            status=entity.get("status"),
            error_description=entity.get("error_description"),
            data=event,
            raw_body=body,
        )

    # Checkout

    def checkout_options(self, req: OrderRequest, provider_order_id: str, contact: ContactInfo) -> CheckoutOptions:
        return CheckoutOptions(
            key=self.config.key_id,
            amount=req.amount_minor,
            currency=req.currency,
            name=self.config.checkout_name,
            description=req.description,
            order_id=provider_order_id,
            prefill={"name": contact.name, "email": contact.email, "contact": contact.phone or ""},
            notes=req.notes,
            theme={"color": self.config.theme_color},
            callback_url=self.config.callback_url,
        )

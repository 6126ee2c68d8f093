"""
Application service wrapping the payment gateway port with logging.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks), keeping dependencies one-way.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Union

from application.dtos.payments import (
    CheckoutOptions,
    ContactInfo,
    OrderRequest,
    PaymentStatusResult,
    WebhookEvent,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger


logger = get_logger(__name__)


class PaymentService:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    @property
    def provider(self) -> str:
        return self.gateway.provider

    def new_transaction_id(self, prefix: str) -> str:
        return self.gateway.generate_transaction_id(prefix)

    def prepare_order(
        self,
        transaction_id: str,
        amount: Union[str, Decimal, int, float],
        description: str,
        contact: ContactInfo,
        notes: Optional[dict[str, str]] = None,
    ) -> OrderRequest:
        return self.gateway.prepare_order(transaction_id, amount, description, contact, notes)

    async def create_order(self, req: OrderRequest) -> str:
        logger.info(
            "payment_order_create_request",
            transaction_id=req.transaction_id,
            provider=self.provider,
            amount_minor=req.amount_minor,
            currency=req.currency,
        )
        order_id = await self.gateway.create_order(req)
        logger.info(
            "payment_order_create_response",
            transaction_id=req.transaction_id,
            provider=self.provider,
            provider_order_id=order_id,
        )
        return order_id

    async def fetch_payment(self, payment_id: str) -> PaymentStatusResult:
        result = await self.gateway.fetch_payment(payment_id)
        logger.info("payment_status_fetched", payment_id=payment_id, status=result.status, provider=self.provider)
        return result

    async def fetch_order_payments(self, provider_order_id: str) -> list[PaymentStatusResult]:
        logger.info("payment_order_payments_request", provider_order_id=provider_order_id, provider=self.provider)
        return await self.gateway.fetch_order_payments(provider_order_id)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return self.gateway.verify_payment_signature(order_id, payment_id, signature)

    def checkout_options(self, req: OrderRequest, provider_order_id: str, contact: ContactInfo) -> CheckoutOptions:
        return self.gateway.checkout_options(req, provider_order_id, contact)

    def handle_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:
        event = self.gateway.parse_webhook(headers, body)
        logger.info("payment_webhook_parsed", provider=self.provider, event_type=event.type, event_id=event.id)
        return event

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()

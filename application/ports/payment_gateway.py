"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, Union, runtime_checkable

from application.dtos.payments import (
    CheckoutOptions,
    ContactInfo,
    OrderRequest,
    PaymentStatusResult,
    WebhookEvent,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the payment provider.

    Signature checks are pure; the async methods perform one HTTPS call each.
    """

    provider: str

    def generate_transaction_id(self, prefix: str) -> str: ...

    def prepare_order(
        self,
        transaction_id: str,
        amount: Union[str, Decimal, int, float],
        description: str,
        contact: ContactInfo,
        extra_notes: Optional[dict[str, str]] = None,
    ) -> OrderRequest: ...

    async def create_order(self, req: OrderRequest) -> str: ...

    async def fetch_payment(self, payment_id: str) -> PaymentStatusResult: ...

    async def fetch_order_payments(self, order_id: str) -> list[PaymentStatusResult]: ...

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool: ...

    def verify_webhook_signature(self, payload: str, signature: str, timestamp: Optional[str] = None) -> bool: ...

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent: ...

    def checkout_options(self, req: OrderRequest, provider_order_id: str, contact: ContactInfo) -> CheckoutOptions: ...

    async def aclose(self) -> None: ...

"""
Payment errors mapped to unified BusinessException variants.

Raised by gateway adapters and the settlement flow; the application layer
catches them without importing infrastructure.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentGatewayError(BusinessException):
    """Non-2xx or malformed provider response. Never retried automatically."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        body: str | None = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "status_code": status_code, "body": body}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentGatewayError",
            details=full_details,
            message_key="payment.gateway_error",
        )


class PaymentGatewayTimeout(BusinessException):
    """The provider did not answer in time; the outcome is unknown."""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.TIMEOUT,
            message=message,
            error_type="PaymentGatewayTimeout",
            details=full_details,
            message_key="payment.gateway_timeout",
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
            message_key="payment.signature_invalid",
        )


class PaymentOrderNotFoundException(BusinessException):
    def __init__(self, identifier: str):
        super().__init__(
            code=PaymentCode.ORDER_NOT_FOUND,
            message=f"Payment order not found: {identifier}",
            error_type="PaymentOrderNotFound",
            details={"identifier": identifier},
            message_key="payment.not_found",
        )


class PaymentOrderSettledException(BusinessException):
    """The order left Pending before the caller could change it."""

    def __init__(self, resource: str, transaction_id: str):
        super().__init__(
            code=PaymentCode.ORDER_SETTLED,
            message=f"Payment for this {resource} is already being settled",
            error_type="PaymentOrderSettled",
            details={"resource": resource, "transaction_id": transaction_id},
            message_key="payment.order_settled",
            format_params={"resource": resource},
        )

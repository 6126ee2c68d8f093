"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from application.dtos.base import DTOBase


class ContactInfo(BaseModel):
    """Subject contact data embedded in provider notes and checkout prefill."""
    name: str = ""
    email: str = ""
    phone: Optional[str] = None


class OrderRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(..., max_length=40)  # provider receipt limit
    amount_minor: int = Field(..., ge=0)
    currency: str = "INR"
    description: str = ""
    notes: dict[str, str] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class CheckoutOptions(BaseModel):
    """Options handed to the provider's client-side checkout."""
    key: str
    amount: int
    currency: str
    name: str
    description: str
    order_id: str
    prefill: dict[str, str] = Field(default_factory=dict)
    notes: dict[str, str] = Field(default_factory=dict)
    theme: dict[str, str] = Field(default_factory=dict)
    callback_url: str
    redirect: bool = True


class PaymentStatusResult(BaseModel):
    payment_id: str
    order_id: Optional[str] = None
    status: str
    internal_status: str
    error_description: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.internal_status == "completed"

    @property
    def is_failure(self) -> bool:
        return self.internal_status == "failed"


class WebhookEvent(BaseModel):
    id: str
    type: str
    provider: str
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None
    error_description: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    raw_body: Optional[bytes] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class PaymentCallback(BaseModel):
    """Fields posted back by the provider checkout after payment."""
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class CheckoutDTO(DTOBase):
    transaction_id: str
    purpose: str
    reference_id: int
    provider_order_id: str
    amount: Decimal
    currency: str
    checkout: CheckoutOptions


class PaymentOutcome(DTOBase):
    """Result of settling a payment. A failure never raises out of settlement."""
    success: bool
    status: str
    message: str
    transaction_id: Optional[str] = None
    purpose: Optional[str] = None
    reference_id: Optional[int] = None
    certificate_url: Optional[str] = None


class PaymentOrderDTO(DTOBase):
    transaction_id: str
    purpose: str
    reference_id: int
    amount: Decimal
    currency: str
    status: str
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

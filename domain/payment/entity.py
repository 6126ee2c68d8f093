"""
Payment order entity - the local record of one provider order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.subject.entity import SubjectRef


class PaymentStatus(str, Enum):
    """Payment order status. Pending moves once, to Completed or Failed."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentPurpose(str, Enum):
    BOOKING = "booking"
    CERTIFICATE = "certificate"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PaymentOrder:
    """
    Payment order aggregate

    Business rules:
    1. transaction_id is unique and doubles as the provider receipt
    2. amount must be greater than 0
    3. status is monotonic: pending -> completed | failed, never back
    4. orders are never deleted; failed ones stay for audit
    """

    id: Optional[int]
    transaction_id: str
    purpose: PaymentPurpose
    reference_id: int  # booking id or certificate purchase id
    subject: SubjectRef
    amount: Decimal
    amount_minor: int
    currency: str = "INR"
    status: PaymentStatus = PaymentStatus.PENDING
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than 0: {self.amount}",
                field="amount",
            )
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        if self.metadata is None:
            self.metadata = {}

    @property
    def is_pending(self) -> bool:
        return self.status is PaymentStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status is PaymentStatus.COMPLETED

    def attach_provider_order(self, provider_order_id: str) -> None:
        if not self.is_pending:
            raise DomainValidationException(
                f"Cannot attach a provider order to a {self.status.value} payment",
                field="status",
            )
        if self.provider_order_id and self.provider_order_id != provider_order_id:
            raise DomainValidationException(
                "Payment already linked to another provider order",
                field="provider_order_id",
            )
        self.provider_order_id = provider_order_id
        self.updated_at = datetime.now(timezone.utc)

    def mark_completed(self, provider_payment_id: Optional[str] = None) -> bool:
        """
        Mark the order paid.

        Returns False when the order was already completed, so a repeated
        callback or webhook leaves paid_at untouched.
        """
        if self.status is PaymentStatus.COMPLETED:
            return False
        if self.status is not PaymentStatus.PENDING:
            raise DomainValidationException(
                f"Cannot move payment from {self.status.value} to completed",
                field="status",
            )
        self.status = PaymentStatus.COMPLETED
        if provider_payment_id:
            self.provider_payment_id = provider_payment_id
        self.paid_at = datetime.now(timezone.utc)
        self.updated_at = self.paid_at
        self.failure_reason = None
        return True

    def mark_failed(self, reason: str, provider_payment_id: Optional[str] = None) -> bool:
        """Mark the order failed; False when it already was."""
        if self.status is PaymentStatus.FAILED:
            return False
        if self.status is not PaymentStatus.PENDING:
            raise DomainValidationException(
                f"Cannot move payment from {self.status.value} to failed",
                field="status",
            )
        self.status = PaymentStatus.FAILED
        self.failure_reason = reason
        if provider_payment_id:
            self.provider_payment_id = provider_payment_id
        self.updated_at = datetime.now(timezone.utc)
        return True

    def is_stale(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        """A pending order older than ttl is treated as an abandoned checkout."""
        now = now or datetime.now(timezone.utc)
        return self.is_pending and self.created_at is not None and now - self.created_at >= ttl

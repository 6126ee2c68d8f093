"""
Certificate purchase entity.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import _ensure_utc
from domain.subject.entity import SubjectRef


class CertificatePurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CertificatePurchase:
    """
    Purchase of the certificate for one test result.

    Business rules:
    1. at most one pending or completed purchase per test result
    2. failed purchases are kept; a retry creates a new purchase
    3. the certificate url is set once and never replaced
    """

    id: Optional[int]
    test_result_id: int
    subject: SubjectRef
    amount: Decimal
    currency: str = "INR"
    status: CertificatePurchaseStatus = CertificatePurchaseStatus.PENDING
    transaction_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    certificate_url: Optional[str] = None
    certificate_generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(
                f"Certificate price must be greater than 0: {self.amount}",
                field="amount",
            )
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        self.certificate_generated_at = _ensure_utc(self.certificate_generated_at)

    @property
    def is_pending(self) -> bool:
        return self.status is CertificatePurchaseStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status is CertificatePurchaseStatus.COMPLETED

    @property
    def key(self) -> str:
        return f"test_result:{self.test_result_id}"

    def complete(self, provider_payment_id: Optional[str], paid_at: Optional[datetime] = None) -> bool:
        """Returns False when already completed; paid_at is stamped only once."""
        if self.is_completed:
            return False
        if not self.is_pending:
            raise DomainValidationException(
                f"Cannot move certificate purchase from {self.status.value} to completed",
                field="status",
            )
        self.status = CertificatePurchaseStatus.COMPLETED
        self.provider_payment_id = provider_payment_id
        self.paid_at = _ensure_utc(paid_at) or datetime.now(timezone.utc)
        self.updated_at = datetime.now(timezone.utc)
        return True

    def fail(self, reason: str) -> bool:
        if self.status is CertificatePurchaseStatus.FAILED:
            return False
        if not self.is_pending:
            raise DomainValidationException(
                f"Cannot move certificate purchase from {self.status.value} to failed",
                field="status",
            )
        self.status = CertificatePurchaseStatus.FAILED
        self.failure_reason = reason
        self.updated_at = datetime.now(timezone.utc)
        return True

    def attach_certificate(self, url: str) -> bool:
        if not self.is_completed:
            raise DomainValidationException(
                "Certificate can only be issued for a completed purchase",
                field="status",
            )
        if self.certificate_url:
            return False
        self.certificate_url = url
        self.certificate_generated_at = datetime.now(timezone.utc)
        self.updated_at = self.certificate_generated_at
        return True

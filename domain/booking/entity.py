"""
Test booking entity.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import _ensure_utc
from domain.subject.entity import SubjectRef


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass
class Booking:
    """
    A subject's booking of a test, paid through one payment order.

    Business rules:
    1. only a pending booking changes status
    2. confirming twice is a no-op
    3. a subject holds at most one pending booking per test
    """

    id: Optional[int]
    test_id: int
    subject: SubjectRef
    status: BookingStatus = BookingStatus.PENDING
    transaction_id: Optional[str] = None
    status_reason: Optional[str] = None
    is_reattempt: bool = False
    booked_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.booked_at = _ensure_utc(self.booked_at) or datetime.now(timezone.utc)
        self.updated_at = _ensure_utc(self.updated_at)

    @property
    def is_pending(self) -> bool:
        return self.status is BookingStatus.PENDING

    @property
    def key(self) -> str:
        return f"test:{self.test_id}/{self.subject}"

    def _leave_pending(self, status: BookingStatus, reason: str) -> None:
        if not self.is_pending:
            raise DomainValidationException(
                f"Cannot move booking from {self.status.value} to {status.value}",
                field="status",
            )
        self.status = status
        self.status_reason = reason
        self.updated_at = datetime.now(timezone.utc)

    def confirm(self, reason: str = "Payment confirmed") -> bool:
        if self.status is BookingStatus.CONFIRMED:
            return False
        self._leave_pending(BookingStatus.CONFIRMED, reason)
        return True

    def fail(self, reason: str) -> bool:
        if self.status is BookingStatus.FAILED:
            return False
        self._leave_pending(BookingStatus.FAILED, reason)
        return True

    def cancel(self, reason: str = "Cancelled by user") -> None:
        self._leave_pending(BookingStatus.CANCELLED, reason)

    def supersede(self, reason: str = "Duplicate booking superseded during payment") -> None:
        self._leave_pending(BookingStatus.SUPERSEDED, reason)

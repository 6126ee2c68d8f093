"""Unit of Work abstraction"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.account.repository import AccountRepository
from domain.assessment.repository import TestRepository, TestResultRepository
from domain.booking.repository import BookingRepository
from domain.certificate.repository import CertificatePurchaseRepository
from domain.payment.repository import PaymentOrderRepository
from domain.subject.repository import SubjectRepository


class AbstractUnitOfWork(ABC):
    """Transaction boundary used by application services."""

    subject_repository: SubjectRepository
    account_repository: AccountRepository
    test_repository: TestRepository
    test_result_repository: TestResultRepository
    booking_repository: BookingRepository
    certificate_repository: CertificatePurchaseRepository
    payment_order_repository: PaymentOrderRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.subject_repository = None  # type: ignore[assignment]
        self.account_repository = None  # type: ignore[assignment]
        self.test_repository = None  # type: ignore[assignment]
        self.test_result_repository = None  # type: ignore[assignment]
        self.booking_repository = None  # type: ignore[assignment]
        self.certificate_repository = None  # type: ignore[assignment]
        self.payment_order_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # auto-commit only for writable units not committed explicitly
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Roll the transaction back."""
        ...

"""SQLAlchemy Unit of Work implementation"""
from __future__ import annotations

from typing import Optional, Callable
import inspect

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.account_repository import SQLAlchemyAccountRepository
from infrastructure.repositories.assessment_repository import (
    SQLAlchemyTestRepository,
    SQLAlchemyTestResultRepository,
)
from infrastructure.repositories.booking_repository import SQLAlchemyBookingRepository
from infrastructure.repositories.certificate_repository import SQLAlchemyCertificatePurchaseRepository
from infrastructure.repositories.payment_order_repository import SQLAlchemyPaymentOrderRepository
from infrastructure.repositories.subject_repository import SQLAlchemySubjectRepository


_REPOSITORIES = {
    "subject_repository": SQLAlchemySubjectRepository,
    "account_repository": SQLAlchemyAccountRepository,
    "test_repository": SQLAlchemyTestRepository,
    "test_result_repository": SQLAlchemyTestResultRepository,
    "booking_repository": SQLAlchemyBookingRepository,
    "certificate_repository": SQLAlchemyCertificatePurchaseRepository,
    "payment_order_repository": SQLAlchemyPaymentOrderRepository,
}


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """Unit of Work over one AsyncSession; every repository shares it."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._external_session = session
        self.session: Optional[AsyncSession] = session
        self._detach_repositories()

    def _detach_repositories(self) -> None:
        for name in _REPOSITORIES:
            setattr(self, name, None)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        for name, repo_cls in _REPOSITORIES.items():
            setattr(self, name, repo_cls(self.session))
        # explicit transaction only when writing
        if not self._readonly:
            self._transaction = await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # commit/rollback normally ends the transaction; close it if still active
            tx = getattr(self, "_transaction", None)
            if tx is not None and getattr(tx, "is_active", False):
                close = getattr(tx, "close", None)
                if callable(close):
                    res = close()
                    if inspect.isawaitable(res):
                        await res
            self._transaction = None
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self._detach_repositories()

    async def commit(self) -> None:
        if self._readonly:
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False

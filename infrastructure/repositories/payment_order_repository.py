"""
Payment order repository - SQLAlchemy implementation
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import DuplicateInProgressException
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus
from domain.payment.repository import PaymentOrderRepository
from domain.subject.entity import SubjectKind, SubjectRef
from infrastructure.models.payment import PaymentOrderModel


logger = get_logger(__name__)


class SQLAlchemyPaymentOrderRepository(PaymentOrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentOrderModel) -> PaymentOrder:
        return PaymentOrder(
            id=model.id,
            transaction_id=model.transaction_id,
            purpose=PaymentPurpose(model.purpose),
            reference_id=model.reference_id,
            subject=SubjectRef(SubjectKind(model.subject_kind), model.subject_sap_id),
            amount=Decimal(str(model.amount)),
            amount_minor=model.amount_minor,
            currency=model.currency,
            status=PaymentStatus(model.status),
            provider_order_id=model.provider_order_id,
            provider_payment_id=model.provider_payment_id,
            failure_reason=model.failure_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: PaymentOrder) -> PaymentOrderModel:
        return PaymentOrderModel(
            id=entity.id,
            transaction_id=entity.transaction_id,
            purpose=entity.purpose.value,
            reference_id=entity.reference_id,
            subject_kind=entity.subject.kind.value,
            subject_sap_id=entity.subject.sap_id,
            amount=entity.amount,
            amount_minor=entity.amount_minor,
            currency=entity.currency,
            status=entity.status.value,
            provider_order_id=entity.provider_order_id,
            provider_payment_id=entity.provider_payment_id,
            failure_reason=entity.failure_reason,
            created_at=entity.created_at,
            updated_at=entity.updated_at or entity.created_at,
            paid_at=entity.paid_at,
            extra_metadata=entity.metadata,
        )

    @staticmethod
    def _mutable_fields(entity: PaymentOrder) -> dict:
        return {
            "status": entity.status.value,
            "provider_order_id": entity.provider_order_id,
            "provider_payment_id": entity.provider_payment_id,
            "failure_reason": entity.failure_reason,
            "paid_at": entity.paid_at,
            "extra_metadata": entity.metadata,
            "updated_at": entity.updated_at or entity.created_at,
        }

    async def create(self, order: PaymentOrder) -> PaymentOrder:
        try:
            db_order = self._to_model(order)
            self.session.add(db_order)
            await self.session.flush()
            await self.session.refresh(db_order)
        except IntegrityError:
            logger.warning("payment_order_create_conflict", transaction_id=order.transaction_id)
            raise DuplicateInProgressException("payment order", order.transaction_id)
        logger.info(
            "payment_order_created",
            payment_order_id=db_order.id,
            transaction_id=db_order.transaction_id,
            purpose=db_order.purpose,
            reference_id=db_order.reference_id,
        )
        return self._to_entity(db_order)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentOrder]:
        result = await self.session.execute(
            select(PaymentOrderModel).where(PaymentOrderModel.transaction_id == transaction_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]:
        result = await self.session.execute(
            select(PaymentOrderModel).where(PaymentOrderModel.provider_order_id == provider_order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def update(self, order: PaymentOrder) -> PaymentOrder:
        result = await self.session.execute(
            select(PaymentOrderModel).where(PaymentOrderModel.id == order.id)
        )
        db_order = result.scalar_one_or_none()
        if not db_order:
            raise ValueError(f"Payment order {order.id} does not exist")

        for name, value in self._mutable_fields(order).items():
            setattr(db_order, name, value)

        await self.session.flush()
        await self.session.refresh(db_order)
        logger.info("payment_order_updated", transaction_id=db_order.transaction_id, status=db_order.status)
        return self._to_entity(db_order)

    async def save_transition(self, order: PaymentOrder, expected: PaymentStatus) -> bool:
        stmt = (
            update(PaymentOrderModel)
            .where(
                PaymentOrderModel.id == order.id,
                PaymentOrderModel.status == expected.value,
            )
            .values(**self._mutable_fields(order))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            logger.info(
                "payment_order_transition_lost",
                transaction_id=order.transaction_id,
                expected=expected.value,
                target=order.status.value,
            )
            return False
        return True

    async def list_pending(self, created_before: datetime, limit: int = 100) -> List[PaymentOrder]:
        result = await self.session.execute(
            select(PaymentOrderModel)
            .where(
                PaymentOrderModel.status == PaymentStatus.PENDING.value,
                PaymentOrderModel.created_at <= created_before,
            )
            .order_by(PaymentOrderModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

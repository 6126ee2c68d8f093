"""
Certificate purchase repository - SQLAlchemy implementation
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.certificate.entity import CertificatePurchase, CertificatePurchaseStatus
from domain.certificate.repository import CertificatePurchaseRepository
from domain.common.exceptions import DuplicateInProgressException
from domain.subject.entity import SubjectKind, SubjectRef
from infrastructure.models.certificate import CertificatePurchaseModel


logger = get_logger(__name__)


def live_test_result_id(purchase: CertificatePurchase) -> Optional[int]:
    if purchase.status is CertificatePurchaseStatus.FAILED:
        return None
    return purchase.test_result_id


class SQLAlchemyCertificatePurchaseRepository(CertificatePurchaseRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CertificatePurchaseModel) -> CertificatePurchase:
        return CertificatePurchase(
            id=model.id,
            test_result_id=model.test_result_id,
            subject=SubjectRef(SubjectKind(model.subject_kind), model.subject_sap_id),
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            status=CertificatePurchaseStatus(model.status),
            transaction_id=model.transaction_id,
            provider_payment_id=model.provider_payment_id,
            failure_reason=model.failure_reason,
            certificate_url=model.certificate_url,
            certificate_generated_at=model.certificate_generated_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    def _to_model(self, entity: CertificatePurchase) -> CertificatePurchaseModel:
        return CertificatePurchaseModel(
            id=entity.id,
            test_result_id=entity.test_result_id,
            live_test_result_id=live_test_result_id(entity),
            subject_kind=entity.subject.kind.value,
            subject_sap_id=entity.subject.sap_id,
            amount=entity.amount,
            currency=entity.currency,
            status=entity.status.value,
            transaction_id=entity.transaction_id,
            provider_payment_id=entity.provider_payment_id,
            failure_reason=entity.failure_reason,
            certificate_url=entity.certificate_url,
            certificate_generated_at=entity.certificate_generated_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at or entity.created_at,
            paid_at=entity.paid_at,
        )

    async def create(self, purchase: CertificatePurchase) -> CertificatePurchase:
        try:
            db_purchase = self._to_model(purchase)
            self.session.add(db_purchase)
            await self.session.flush()
            await self.session.refresh(db_purchase)
        except IntegrityError:
            logger.warning("certificate_purchase_create_conflict", test_result_id=purchase.test_result_id)
            raise DuplicateInProgressException("certificate purchase", purchase.key)
        logger.info(
            "certificate_purchase_created",
            purchase_id=db_purchase.id,
            test_result_id=db_purchase.test_result_id,
        )
        return self._to_entity(db_purchase)

    async def get_by_id(self, purchase_id: int) -> Optional[CertificatePurchase]:
        result = await self.session.execute(
            select(CertificatePurchaseModel).where(CertificatePurchaseModel.id == purchase_id)
        )
        db_purchase = result.scalar_one_or_none()
        return self._to_entity(db_purchase) if db_purchase else None

    async def get_live_by_test_result(self, test_result_id: int) -> Optional[CertificatePurchase]:
        result = await self.session.execute(
            select(CertificatePurchaseModel).where(CertificatePurchaseModel.live_test_result_id == test_result_id)
        )
        db_purchase = result.scalar_one_or_none()
        return self._to_entity(db_purchase) if db_purchase else None

    async def list_by_test_result(self, test_result_id: int) -> List[CertificatePurchase]:
        result = await self.session.execute(
            select(CertificatePurchaseModel)
            .where(CertificatePurchaseModel.test_result_id == test_result_id)
            .order_by(CertificatePurchaseModel.created_at.desc(), CertificatePurchaseModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, purchase: CertificatePurchase) -> CertificatePurchase:
        result = await self.session.execute(
            select(CertificatePurchaseModel).where(CertificatePurchaseModel.id == purchase.id)
        )
        db_purchase = result.scalar_one_or_none()
        if not db_purchase:
            raise ValueError(f"Certificate purchase {purchase.id} does not exist")

        db_purchase.status = purchase.status.value
        db_purchase.live_test_result_id = live_test_result_id(purchase)
        db_purchase.transaction_id = purchase.transaction_id
        db_purchase.provider_payment_id = purchase.provider_payment_id
        db_purchase.failure_reason = purchase.failure_reason
        db_purchase.certificate_url = purchase.certificate_url
        db_purchase.certificate_generated_at = purchase.certificate_generated_at
        db_purchase.paid_at = purchase.paid_at
        db_purchase.updated_at = purchase.updated_at or db_purchase.updated_at

        await self.session.flush()
        await self.session.refresh(db_purchase)
        logger.info("certificate_purchase_updated", purchase_id=db_purchase.id, status=db_purchase.status)
        return self._to_entity(db_purchase)

"""
Certificate application service - eligibility, purchase and issuing.

Purchasing follows the same payment-backed lifecycle as bookings; once the
payment completes the certificate is generated through the renderer port.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from application.dtos.certificates import CertificateEligibilityDTO, CertificatePurchaseDTO
from application.dtos.payments import CheckoutDTO, ContactInfo
from application.ports.certificate_renderer import CertificateRenderer
from application.ports.notifier import Notifier
from application.services.settlement_service import SESSION_EXPIRED, PaymentSettlementService
from application.utils.notifications import notify_safely
from core.logging_config import get_logger
from domain.assessment.entity import CERTIFICATE_PASS_PERCENTAGE
from domain.certificate.entity import CertificatePurchase
from domain.common.exceptions import (
    DomainValidationException,
    DuplicateInProgressException,
    NotEligibleException,
    ResourceNotFoundException,
    SubjectNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus


logger = get_logger(__name__)

TRANSACTION_PREFIX = "cert"


class CertificateApplicationService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        settlement: PaymentSettlementService,
        renderer: CertificateRenderer,
        *,
        notifier: Optional[Notifier] = None,
        price: Decimal = Decimal("1000.00"),
        currency: str = "INR",
        pass_percentage: float = CERTIFICATE_PASS_PERCENTAGE,
        pending_ttl: timedelta = timedelta(minutes=60),
    ) -> None:
        self._uow_factory = uow_factory
        self._settlement = settlement
        self._renderer = renderer
        self._notifier = notifier
        self.price = price
        self.currency = currency
        self.pass_percentage = pass_percentage
        self._pending_ttl = pending_ttl
        settlement.register(CertificateSettlementHandler(self))

    async def check_eligibility(self, test_result_id: int) -> CertificateEligibilityDTO:
        async with self._uow_factory(readonly=True) as uow:
            result = await uow.test_result_repository.get_by_id(test_result_id)
        if result is None:
            raise ResourceNotFoundException("TestResult", test_result_id)
        return CertificateEligibilityDTO(
            test_result_id=result.id,
            score_percentage=round(result.score_percentage, 2),
            rating=result.rating,
            eligible=result.is_certificate_eligible(self.pass_percentage),
            pass_percentage=self.pass_percentage,
            price=self.price,
            currency=self.currency,
        )

    async def initiate_purchase(self, test_result_id: int, subject_id: str) -> CheckoutDTO:
        """Create a pending purchase for an eligible result and open its provider order."""
        try:
            return await self._open_purchase(test_result_id, subject_id)
        except DuplicateInProgressException as exc:
            if exc.details.get("existing_id") is not None:
                raise
            raise await self._lost_race(test_result_id, exc)

    async def _open_purchase(self, test_result_id: int, subject_id: str) -> CheckoutDTO:
        payments = self._settlement.payments
        async with self._uow_factory() as uow:
            result = await uow.test_result_repository.get_by_id(test_result_id)
            if result is None:
                raise ResourceNotFoundException("TestResult", test_result_id)
            subject = await uow.subject_repository.resolve(subject_id)
            if subject is None:
                raise SubjectNotFoundException(subject_id)
            if result.subject != subject.ref:
                raise NotEligibleException(
                    "Test result does not belong to this subject",
                    details={"test_result_id": test_result_id},
                )
            if not result.is_certificate_eligible(self.pass_percentage):
                raise NotEligibleException(
                    f"Score {result.score_percentage:.2f}% is below the "
                    f"{self.pass_percentage:g}% required for a certificate",
                    details={
                        "test_result_id": test_result_id,
                        "score_percentage": round(result.score_percentage, 2),
                        "pass_percentage": self.pass_percentage,
                    },
                )

            existing = await uow.certificate_repository.get_live_by_test_result(result.id)
            if existing is not None:
                await self._expire_or_reject(uow, existing)

            test = await uow.test_repository.get_by_id(result.test_id)
            title = test.title if test is not None else f"test {result.test_id}"
            transaction_id = payments.new_transaction_id(TRANSACTION_PREFIX)
            contact = ContactInfo(name=subject.name, email=subject.email, phone=subject.phone)
            req = payments.prepare_order(
                transaction_id,
                self.price,
                f"Certificate for {title}",
                contact,
                {"testResultId": str(result.id), "subjectId": subject.ref.sap_id},
            )
            purchase = await uow.certificate_repository.create(
                CertificatePurchase(
                    id=None,
                    test_result_id=result.id,
                    subject=subject.ref,
                    amount=self.price,
                    currency=req.currency,
                    transaction_id=transaction_id,
                )
            )
            await uow.payment_order_repository.create(
                PaymentOrder(
                    id=None,
                    transaction_id=transaction_id,
                    purpose=PaymentPurpose.CERTIFICATE,
                    reference_id=purchase.id,
                    subject=subject.ref,
                    amount=self.price,
                    amount_minor=req.amount_minor,
                    currency=req.currency,
                )
            )

        logger.info(
            "certificate_purchase_initiated",
            purchase_id=purchase.id,
            test_result_id=result.id,
            subject=str(subject.ref),
            transaction_id=transaction_id,
        )
        return await self._settlement.submit_order(req, contact)

    async def _lost_race(self, test_result_id: int, exc: DuplicateInProgressException) -> DuplicateInProgressException:
        async with self._uow_factory(readonly=True) as uow:
            winner = await uow.certificate_repository.get_live_by_test_result(test_result_id)
        if winner is None:
            return exc
        logger.info("certificate_purchase_lost_race", purchase_id=winner.id, test_result_id=test_result_id)
        return DuplicateInProgressException(
            "certificate purchase",
            winner.key,
            existing_id=winner.id,
            existing_status=winner.status.value,
        )

    async def _expire_or_reject(self, uow: AbstractUnitOfWork, existing: CertificatePurchase) -> None:
        now = datetime.now(timezone.utc)
        if existing.is_pending and now - existing.created_at >= self._pending_ttl and existing.transaction_id:
            order = await uow.payment_order_repository.get_by_transaction_id(existing.transaction_id)
            if order is not None and order.mark_failed(SESSION_EXPIRED):
                if await uow.payment_order_repository.save_transition(order, PaymentStatus.PENDING):
                    existing.fail(SESSION_EXPIRED)
                    await uow.certificate_repository.update(existing)
                    logger.info("certificate_purchase_expired", purchase_id=existing.id)
                    return
        raise DuplicateInProgressException(
            "certificate purchase",
            existing.key,
            existing_id=existing.id,
            existing_status=existing.status.value,
        )

    async def get_purchase(self, test_result_id: int) -> CertificatePurchaseDTO:
        """The live purchase for a result, or the most recent failed one."""
        async with self._uow_factory(readonly=True) as uow:
            purchase = await uow.certificate_repository.get_live_by_test_result(test_result_id)
            if purchase is None:
                history = await uow.certificate_repository.list_by_test_result(test_result_id)
                purchase = history[0] if history else None
        if purchase is None:
            raise ResourceNotFoundException("CertificatePurchase", test_result_id)
        return self._to_dto(purchase)

    async def generate_certificate(self, purchase_id: int) -> str:
        """Issue the certificate for a completed purchase; an existing url is returned as is."""
        async with self._uow_factory(readonly=True) as uow:
            purchase = await uow.certificate_repository.get_by_id(purchase_id)
            if purchase is None:
                raise ResourceNotFoundException("CertificatePurchase", purchase_id)
            if not purchase.is_completed:
                raise DomainValidationException(
                    "Certificate can only be issued for a completed purchase",
                    field="status",
                )
            if purchase.certificate_url:
                return purchase.certificate_url
            result = await uow.test_result_repository.get_by_id(purchase.test_result_id)
            if result is None:
                raise ResourceNotFoundException("TestResult", purchase.test_result_id)
            test = await uow.test_repository.get_by_id(result.test_id)
            if test is None:
                raise ResourceNotFoundException("Test", result.test_id)
            subject = await uow.subject_repository.get(purchase.subject)
            if subject is None:
                raise SubjectNotFoundException(purchase.subject.sap_id)

        url = await self._renderer.render(purchase_id=purchase.id, subject=subject, test=test, result=result)

        async with self._uow_factory() as uow:
            purchase = await uow.certificate_repository.get_by_id(purchase_id)
            issued = purchase.attach_certificate(url)
            if issued:
                await uow.certificate_repository.update(purchase)

        if issued:
            logger.info("certificate_issued", purchase_id=purchase_id, url=url)
            if self._notifier is not None and subject.email:
                await notify_safely(
                    self._notifier.send_certificate(
                        subject.email,
                        purchase.certificate_url,
                        {
                            "name": subject.name,
                            "test": test.title,
                            "score_percentage": round(result.score_percentage, 2),
                            "rating": result.rating,
                        },
                    ),
                    kind="certificate",
                    purchase_id=purchase_id,
                )
        return purchase.certificate_url

    @staticmethod
    def _to_dto(purchase: CertificatePurchase) -> CertificatePurchaseDTO:
        return CertificatePurchaseDTO(
            id=purchase.id,
            test_result_id=purchase.test_result_id,
            subject_id=purchase.subject.sap_id,
            amount=purchase.amount,
            currency=purchase.currency,
            status=purchase.status.value,
            transaction_id=purchase.transaction_id,
            failure_reason=purchase.failure_reason,
            certificate_url=purchase.certificate_url,
            certificate_generated_at=purchase.certificate_generated_at,
            created_at=purchase.created_at,
            paid_at=purchase.paid_at,
        )


class CertificateSettlementHandler:
    """Keeps a certificate purchase in step with its payment order."""

    purpose = PaymentPurpose.CERTIFICATE

    def __init__(self, certificates: CertificateApplicationService) -> None:
        self._certificates = certificates

    async def _purchase(self, uow: AbstractUnitOfWork, order: PaymentOrder) -> CertificatePurchase:
        purchase = await uow.certificate_repository.get_by_id(order.reference_id)
        if purchase is None:
            raise ResourceNotFoundException("CertificatePurchase", order.reference_id)
        return purchase

    async def mark_completed(self, uow: AbstractUnitOfWork, order: PaymentOrder, source: str) -> None:
        purchase = await self._purchase(uow, order)
        if purchase.complete(order.provider_payment_id, order.paid_at):
            await uow.certificate_repository.update(purchase)

    async def mark_failed(self, uow: AbstractUnitOfWork, order: PaymentOrder, reason: str) -> None:
        purchase = await self._purchase(uow, order)
        if purchase.is_pending:
            purchase.fail(reason)
            await uow.certificate_repository.update(purchase)

    async def fulfil(self, order: PaymentOrder) -> dict[str, Any]:
        try:
            url = await self._certificates.generate_certificate(order.reference_id)
        except Exception:
            # the payment stands; the certificate can be generated again later
            logger.exception("certificate_generation_failed", purchase_id=order.reference_id)
            return {"message": "Payment successful but certificate generation failed; request it again later"}
        return {"certificate_url": url}

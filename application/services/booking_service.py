"""
Booking application service - test bookings paid through a payment order.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, List

from application.dtos.bookings import BookingDTO
from application.dtos.payments import CheckoutDTO, ContactInfo
from application.services.settlement_service import (
    CONFIRM_REASONS,
    SESSION_EXPIRED,
    PaymentSettlementService,
)
from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingStatus
from domain.common.exceptions import (
    AttemptsExhaustedException,
    DomainValidationException,
    DuplicateInProgressException,
    ResourceNotFoundException,
    SubjectNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus
from domain.payment.exceptions import PaymentOrderSettledException


logger = get_logger(__name__)

TRANSACTION_PREFIX = "bkg"


class BookingSettlementHandler:
    """Keeps a booking in step with its payment order."""

    purpose = PaymentPurpose.BOOKING

    async def _booking(self, uow: AbstractUnitOfWork, order: PaymentOrder) -> Booking:
        booking = await uow.booking_repository.get_by_id(order.reference_id)
        if booking is None:
            raise ResourceNotFoundException("Booking", order.reference_id)
        return booking

    async def mark_completed(self, uow: AbstractUnitOfWork, order: PaymentOrder, source: str) -> None:
        booking = await self._booking(uow, order)
        if not booking.is_pending and booking.status is not BookingStatus.CONFIRMED:
            # the payment stands; a closed booking needs a manual refund
            logger.warning(
                "booking_paid_after_close",
                booking_id=booking.id,
                status=booking.status.value,
                transaction_id=order.transaction_id,
            )
            return
        if booking.confirm(CONFIRM_REASONS.get(source, CONFIRM_REASONS["callback"])):
            await uow.booking_repository.update(booking)
            await self._supersede_others(uow, booking)

    async def _supersede_others(self, uow: AbstractUnitOfWork, confirmed: Booking) -> None:
        """Supersede pending rows for the same slot that were written without a ``pending_key``.

        The unique ``pending_key`` column stops a second pending booking from being
        inserted, so this only finds rows imported from before the column existed.
        """
        for other in await uow.booking_repository.list_pending(confirmed.test_id, confirmed.subject):
            if other.id == confirmed.id:
                continue
            other.supersede()
            await uow.booking_repository.update(other)
            logger.info("booking_superseded", booking_id=other.id, confirmed_booking_id=confirmed.id)

    async def mark_failed(self, uow: AbstractUnitOfWork, order: PaymentOrder, reason: str) -> None:
        booking = await self._booking(uow, order)
        if booking.is_pending:
            booking.fail(reason)
            await uow.booking_repository.update(booking)

    async def fulfil(self, order: PaymentOrder) -> dict[str, Any]:
        return {}


class BookingApplicationService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        settlement: PaymentSettlementService,
        *,
        pending_ttl: timedelta = timedelta(minutes=60),
    ) -> None:
        self._uow_factory = uow_factory
        self._settlement = settlement
        self._pending_ttl = pending_ttl

    async def initiate_booking(self, test_id: int, subject_id: str, is_reattempt: bool = False) -> CheckoutDTO:
        """Create a pending booking and its provider order.

        Raises DuplicateInProgressException while another recent booking for
        the same test and subject is still pending.
        """
        try:
            return await self._open_booking(test_id, subject_id, is_reattempt)
        except DuplicateInProgressException as exc:
            if exc.details.get("existing_id") is not None:
                raise
            raise await self._lost_race(test_id, subject_id, exc)

    async def _open_booking(self, test_id: int, subject_id: str, is_reattempt: bool) -> CheckoutDTO:
        payments = self._settlement.payments
        async with self._uow_factory() as uow:
            test = await uow.test_repository.get_by_id(test_id)
            if test is None or not test.is_active:
                raise ResourceNotFoundException("Test", test_id)
            subject = await uow.subject_repository.resolve(subject_id)
            if subject is None:
                raise SubjectNotFoundException(subject_id)

            confirmed = await uow.booking_repository.count_confirmed(test.id, subject.ref)
            if confirmed >= test.max_attempts:
                raise AttemptsExhaustedException(test.id, test.max_attempts)
            for existing in await uow.booking_repository.list_pending(test.id, subject.ref):
                await self._replace_stale(uow, existing)

            transaction_id = payments.new_transaction_id(TRANSACTION_PREFIX)
            contact = ContactInfo(name=subject.name, email=subject.email, phone=subject.phone)
            req = payments.prepare_order(
                transaction_id,
                test.price,
                f"Booking for {test.title}",
                contact,
                {"testId": str(test.id), "subjectId": subject.ref.sap_id},
            )
            booking = await uow.booking_repository.create(
                Booking(
                    id=None,
                    test_id=test.id,
                    subject=subject.ref,
                    transaction_id=transaction_id,
                    status_reason="Awaiting payment",
                    is_reattempt=is_reattempt or confirmed > 0,
                )
            )
            await uow.payment_order_repository.create(
                PaymentOrder(
                    id=None,
                    transaction_id=transaction_id,
                    purpose=PaymentPurpose.BOOKING,
                    reference_id=booking.id,
                    subject=subject.ref,
                    amount=Decimal(str(test.price)),
                    amount_minor=req.amount_minor,
                    currency=req.currency,
                )
            )

        logger.info(
            "booking_initiated",
            booking_id=booking.id,
            test_id=test.id,
            subject=str(subject.ref),
            transaction_id=transaction_id,
        )
        return await self._settlement.submit_order(req, contact)

    async def _lost_race(
        self, test_id: int, subject_id: str, exc: DuplicateInProgressException
    ) -> DuplicateInProgressException:
        """Re-read, after the rollback, the pending booking that won a concurrent initiate."""
        async with self._uow_factory(readonly=True) as uow:
            subject = await uow.subject_repository.resolve(subject_id)
            pending = await uow.booking_repository.list_pending(test_id, subject.ref) if subject else []
        if not pending:
            return exc
        winner = pending[-1]
        logger.info("booking_initiate_lost_race", booking_id=winner.id, test_id=test_id)
        return DuplicateInProgressException(
            "booking", winner.key, existing_id=winner.id, existing_status=winner.status.value
        )

    async def _replace_stale(self, uow: AbstractUnitOfWork, existing: Booking) -> None:
        now = datetime.now(timezone.utc)
        if now - existing.booked_at < self._pending_ttl:
            raise DuplicateInProgressException(
                "booking",
                existing.key,
                existing_id=existing.id,
                existing_status=existing.status.value,
            )
        if existing.transaction_id:
            order = await uow.payment_order_repository.get_by_transaction_id(existing.transaction_id)
            if order is not None and order.mark_failed(SESSION_EXPIRED):
                if not await uow.payment_order_repository.save_transition(order, PaymentStatus.PENDING):
                    # settled while we looked at it
                    raise DuplicateInProgressException(
                        "booking", existing.key, existing_id=existing.id, existing_status=existing.status.value
                    )
            elif order is not None and order.is_completed:
                raise DuplicateInProgressException(
                    "booking", existing.key, existing_id=existing.id, existing_status=existing.status.value
                )
        existing.supersede("Superseded by a new booking attempt")
        await uow.booking_repository.update(existing)
        logger.info("booking_superseded", booking_id=existing.id, transaction_id=existing.transaction_id)

    async def cancel_booking(self, booking_id: int, subject_id: str) -> BookingDTO:
        async with self._uow_factory() as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            subject = await uow.subject_repository.resolve(subject_id)
            if booking is None or subject is None or booking.subject != subject.ref:
                raise ResourceNotFoundException("Booking", booking_id)
            if not booking.is_pending:
                raise DomainValidationException(
                    f"Only pending bookings can be cancelled (status: {booking.status.value})",
                    field="status",
                )
            if booking.transaction_id:
                order = await uow.payment_order_repository.get_by_transaction_id(booking.transaction_id)
                if order is not None and order.is_completed:
                    raise PaymentOrderSettledException("booking", order.transaction_id)
                if order is not None and order.mark_failed("Cancelled by user"):
                    if not await uow.payment_order_repository.save_transition(order, PaymentStatus.PENDING):
                        raise PaymentOrderSettledException("booking", order.transaction_id)
            booking.cancel()
            await uow.booking_repository.update(booking)
        logger.info("booking_cancelled", booking_id=booking_id, subject=str(subject.ref))
        return self._to_dto(booking)

    async def get_booking(self, booking_id: int) -> BookingDTO:
        async with self._uow_factory(readonly=True) as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException("Booking", booking_id)
        return self._to_dto(booking)

    async def list_bookings(self, subject_id: str, skip: int = 0, limit: int = 100) -> List[BookingDTO]:
        async with self._uow_factory(readonly=True) as uow:
            subject = await uow.subject_repository.resolve(subject_id)
            if subject is None:
                raise SubjectNotFoundException(subject_id)
            bookings = await uow.booking_repository.list_by_subject(subject.ref, skip=skip, limit=limit)
        return [self._to_dto(b) for b in bookings]

    @staticmethod
    def _to_dto(booking: Booking) -> BookingDTO:
        return BookingDTO(
            id=booking.id,
            test_id=booking.test_id,
            subject_id=booking.subject.sap_id,
            subject_kind=booking.subject.kind.value,
            status=booking.status.value,
            status_reason=booking.status_reason,
            transaction_id=booking.transaction_id,
            is_reattempt=booking.is_reattempt,
            booked_at=booking.booked_at,
            updated_at=booking.updated_at,
        )

"""
Booking repository - SQLAlchemy implementation
"""
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingStatus
from domain.booking.repository import BookingRepository
from domain.common.exceptions import DuplicateInProgressException
from domain.subject.entity import SubjectKind, SubjectRef
from infrastructure.models.booking import BookingModel


logger = get_logger(__name__)


def pending_key(booking: Booking) -> Optional[str]:
    """Uniqueness key while pending, NULL otherwise."""
    if booking.status is not BookingStatus.PENDING:
        return None
    return f"{booking.test_id}:{booking.subject.kind.value}:{booking.subject.sap_id}"


class SQLAlchemyBookingRepository(BookingRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: BookingModel) -> Booking:
        return Booking(
            id=model.id,
            test_id=model.test_id,
            subject=SubjectRef(SubjectKind(model.subject_kind), model.subject_sap_id),
            status=BookingStatus(model.status),
            transaction_id=model.transaction_id,
            status_reason=model.status_reason,
            is_reattempt=model.is_reattempt,
            booked_at=model.booked_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Booking) -> BookingModel:
        return BookingModel(
            id=entity.id,
            test_id=entity.test_id,
            subject_kind=entity.subject.kind.value,
            subject_sap_id=entity.subject.sap_id,
            status=entity.status.value,
            transaction_id=entity.transaction_id,
            status_reason=entity.status_reason,
            is_reattempt=entity.is_reattempt,
            pending_key=pending_key(entity),
            booked_at=entity.booked_at,
            updated_at=entity.updated_at or entity.booked_at,
        )

    def _subject_filter(self, subject: SubjectRef):
        return (
            BookingModel.subject_kind == subject.kind.value,
            BookingModel.subject_sap_id == subject.sap_id,
        )

    async def create(self, booking: Booking) -> Booking:
        try:
            db_booking = self._to_model(booking)
            self.session.add(db_booking)
            await self.session.flush()
            await self.session.refresh(db_booking)
        except IntegrityError:
            logger.warning("booking_create_conflict", test_id=booking.test_id, subject=str(booking.subject))
            raise DuplicateInProgressException("booking", booking.key, existing_status=BookingStatus.PENDING.value)
        logger.info("booking_created", booking_id=db_booking.id, test_id=db_booking.test_id)
        return self._to_entity(db_booking)

    async def get_by_id(self, booking_id: int) -> Optional[Booking]:
        result = await self.session.execute(select(BookingModel).where(BookingModel.id == booking_id))
        db_booking = result.scalar_one_or_none()
        return self._to_entity(db_booking) if db_booking else None

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.transaction_id == transaction_id)
        )
        db_booking = result.scalar_one_or_none()
        return self._to_entity(db_booking) if db_booking else None

    async def list_pending(self, test_id: int, subject: SubjectRef) -> List[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.test_id == test_id,
                BookingModel.status == BookingStatus.PENDING.value,
                *self._subject_filter(subject),
            )
            .order_by(BookingModel.booked_at.asc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_confirmed(self, test_id: int, subject: SubjectRef) -> int:
        result = await self.session.execute(
            select(func.count(BookingModel.id)).where(
                BookingModel.test_id == test_id,
                BookingModel.status == BookingStatus.CONFIRMED.value,
                *self._subject_filter(subject),
            )
        )
        return result.scalar_one()

    async def list_by_subject(self, subject: SubjectRef, skip: int = 0, limit: int = 100) -> List[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(*self._subject_filter(subject))
            .order_by(BookingModel.booked_at.desc(), BookingModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, booking: Booking) -> Booking:
        result = await self.session.execute(select(BookingModel).where(BookingModel.id == booking.id))
        db_booking = result.scalar_one_or_none()
        if not db_booking:
            raise ValueError(f"Booking {booking.id} does not exist")

        db_booking.status = booking.status.value
        db_booking.status_reason = booking.status_reason
        db_booking.transaction_id = booking.transaction_id
        db_booking.pending_key = pending_key(booking)
        db_booking.updated_at = booking.updated_at or db_booking.updated_at

        await self.session.flush()
        await self.session.refresh(db_booking)
        logger.info("booking_updated", booking_id=db_booking.id, status=db_booking.status)
        return self._to_entity(db_booking)

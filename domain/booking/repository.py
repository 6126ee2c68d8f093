"""
Booking repository port.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from domain.subject.entity import SubjectRef
from .entity import Booking


class BookingRepository(ABC):

    @abstractmethod
    async def create(self, booking: Booking) -> Booking:
        """Insert a booking.

        Raises DuplicateInProgressException when another pending booking
        exists for the same test and subject.
        """
        pass

    @abstractmethod
    async def get_by_id(self, booking_id: int) -> Optional[Booking]:
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def list_pending(self, test_id: int, subject: SubjectRef) -> List[Booking]:
        """Pending bookings for a test and subject, oldest first."""
        pass

    @abstractmethod
    async def count_confirmed(self, test_id: int, subject: SubjectRef) -> int:
        pass

    @abstractmethod
    async def list_by_subject(self, subject: SubjectRef, skip: int = 0, limit: int = 100) -> List[Booking]:
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        pass

"""
Payment order repository port.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import PaymentOrder, PaymentStatus


class PaymentOrderRepository(ABC):
    """Persistence contract for payment orders. Orders are never deleted."""

    @abstractmethod
    async def create(self, order: PaymentOrder) -> PaymentOrder:
        """Insert a new order; transaction_id must be unique."""
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[PaymentOrder]:
        pass

    @abstractmethod
    async def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]:
        pass

    @abstractmethod
    async def update(self, order: PaymentOrder) -> PaymentOrder:
        pass

    @abstractmethod
    async def save_transition(self, order: PaymentOrder, expected: PaymentStatus) -> bool:
        """Persist a status change only if the stored status still equals expected.

        Returns False when a concurrent request settled the order first.
        """
        pass

    @abstractmethod
    async def list_pending(self, created_before: datetime, limit: int = 100) -> List[PaymentOrder]:
        """Pending orders created before the cutoff, oldest first."""
        pass

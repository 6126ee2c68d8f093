"""
Certificate purchase repository port.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import CertificatePurchase


class CertificatePurchaseRepository(ABC):

    @abstractmethod
    async def create(self, purchase: CertificatePurchase) -> CertificatePurchase:
        """Insert a purchase.

        Raises DuplicateInProgressException when a pending or completed
        purchase already exists for the test result.
        """
        pass

    @abstractmethod
    async def get_by_id(self, purchase_id: int) -> Optional[CertificatePurchase]:
        pass

    @abstractmethod
    async def get_live_by_test_result(self, test_result_id: int) -> Optional[CertificatePurchase]:
        """The pending or completed purchase for a test result, if any."""
        pass

    @abstractmethod
    async def list_by_test_result(self, test_result_id: int) -> List[CertificatePurchase]:
        """All purchases for a test result including failed ones, newest first."""
        pass

    @abstractmethod
    async def update(self, purchase: CertificatePurchase) -> CertificatePurchase:
        pass

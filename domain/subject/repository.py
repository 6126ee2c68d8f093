"""
Subject lookup port.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Subject, SubjectRef


class SubjectRepository(ABC):
    """Resolves SAP IDs against users and special users."""

    @abstractmethod
    async def resolve(self, sap_id: str) -> Optional[Subject]:
        """Look up a SAP ID, users first, then special users."""
        pass

    @abstractmethod
    async def get(self, ref: SubjectRef) -> Optional[Subject]:
        """Load an already resolved reference."""
        pass

"""
Read-only ports for tests and results. Both are owned by other parts of the platform.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Test, TestResult


class TestRepository(ABC):
    __test__ = False

    @abstractmethod
    async def get_by_id(self, test_id: int) -> Optional[Test]:
        pass


class TestResultRepository(ABC):
    __test__ = False

    @abstractmethod
    async def get_by_id(self, result_id: int) -> Optional[TestResult]:
        pass

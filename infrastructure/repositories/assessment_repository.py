"""
Read-only repositories for tests and test results.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.assessment.entity import Test, TestResult
from domain.assessment.repository import TestRepository, TestResultRepository
from domain.subject.entity import SubjectKind, SubjectRef
from infrastructure.models.assessment import TestModel, TestResultModel


class SQLAlchemyTestRepository(TestRepository):
    __test__ = False

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, test_id: int) -> Optional[Test]:
        result = await self.session.execute(select(TestModel).where(TestModel.id == test_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Test(
            id=model.id,
            title=model.title,
            price=Decimal(str(model.price)),
            max_attempts=model.max_attempts,
            is_active=model.is_active,
        )


class SQLAlchemyTestResultRepository(TestResultRepository):
    __test__ = False

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, result_id: int) -> Optional[TestResult]:
        result = await self.session.execute(select(TestResultModel).where(TestResultModel.id == result_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return TestResult(
            id=model.id,
            test_id=model.test_id,
            subject=SubjectRef(SubjectKind(model.subject_kind), model.subject_sap_id),
            total_questions=model.total_questions,
            correct_answers=model.correct_answers,
            attempt_number=model.attempt_number,
            submitted_at=model.submitted_at,
        )

"""
Tests and results. Owned by the assessment side of the platform; read here.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String

from .base import Base, utcnow


class TestModel(Base):
    __tablename__ = "tests"
    __test__ = False

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(precision=10, scale=2), nullable=False, comment="Booking price in INR")
    max_attempts = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TestResultModel(Base):
    __tablename__ = "test_results"
    __test__ = False

    id = Column(Integer, primary_key=True)
    test_id = Column(Integer, ForeignKey("tests.id"), nullable=False, index=True)
    subject_kind = Column(String(20), nullable=False, comment="user/special_user")
    subject_sap_id = Column(String(50), nullable=False)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False)
    attempt_number = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_test_results_subject", "subject_kind", "subject_sap_id"),
    )

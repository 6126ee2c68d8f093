"""
Certificate purchase table
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from .base import Base, utcnow


class CertificatePurchaseModel(Base):
    """
    live_test_result_id mirrors test_result_id while the purchase is pending
    or completed and is NULL once it fails; the unique index keeps one live
    purchase per result and any number of failed ones.
    """
    __tablename__ = "certificate_purchases"

    id = Column(Integer, primary_key=True)
    test_result_id = Column(Integer, ForeignKey("test_results.id"), nullable=False, index=True)
    live_test_result_id = Column(Integer, unique=True, nullable=True)
    subject_kind = Column(String(20), nullable=False)
    subject_sap_id = Column(String(50), nullable=False)
    amount = Column(Numeric(precision=10, scale=2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default="pending", index=True, comment="pending/completed/failed")
    transaction_id = Column(String(40), unique=True, nullable=True)
    provider_payment_id = Column(String(100), nullable=True)
    failure_reason = Column(String(500), nullable=True)
    certificate_url = Column(String(500), nullable=True)
    certificate_generated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

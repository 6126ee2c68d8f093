"""
Test booking table
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from .base import Base, utcnow


class BookingModel(Base):
    """
    pending_key holds "test_id:kind:sap_id" while the booking is pending and
    NULL otherwise; its unique index allows one pending booking per test and
    subject while keeping any number of settled ones.
    """
    __tablename__ = "test_bookings"

    id = Column(Integer, primary_key=True)
    test_id = Column(Integer, ForeignKey("tests.id"), nullable=False, index=True)
    subject_kind = Column(String(20), nullable=False, comment="user/special_user")
    subject_sap_id = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True,
                    comment="pending/confirmed/cancelled/failed/superseded")
    transaction_id = Column(String(40), unique=True, nullable=True)
    status_reason = Column(String(500), nullable=True)
    is_reattempt = Column(Boolean, nullable=False, default=False)
    pending_key = Column(String(120), unique=True, nullable=True)
    booked_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_bookings_test_subject", "test_id", "subject_kind", "subject_sap_id"),
    )

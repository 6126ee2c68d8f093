"""
Payment order table - infrastructure detail, business rules live in
domain.payment.entity.PaymentOrder.
"""
from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, JSON, Numeric, String, Text

from .base import Base, utcnow


class PaymentOrderModel(Base):
    __tablename__ = "payment_orders"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(String(40), unique=True, index=True, nullable=False, comment="Local id, sent as receipt")
    purpose = Column(String(20), nullable=False, comment="booking/certificate")
    reference_id = Column(Integer, nullable=False, comment="Booking or certificate purchase id")
    subject_kind = Column(String(20), nullable=False)
    subject_sap_id = Column(String(50), nullable=False)

    amount = Column(Numeric(precision=10, scale=2), nullable=False)
    amount_minor = Column(BigInteger, nullable=False, comment="Amount in paise")
    currency = Column(String(3), nullable=False, default="INR")

    status = Column(String(20), nullable=False, default="pending", index=True, comment="pending/completed/failed")
    provider = Column(String(30), nullable=False, default="razorpay")
    provider_order_id = Column(String(100), unique=True, nullable=True)
    provider_payment_id = Column(String(100), nullable=True)
    failure_reason = Column(Text, nullable=True)
    extra_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_payment_orders_purpose_ref", "purpose", "reference_id"),
    )

"""
Certificate DTOs
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from application.dtos.base import DTOBase


class CertificatePurchaseCreateDTO(BaseModel):
    test_result_id: int = Field(..., gt=0)
    subject_id: str = Field(..., min_length=1, max_length=64)


class CertificateEligibilityDTO(DTOBase):
    test_result_id: int
    score_percentage: float
    rating: str
    eligible: bool
    pass_percentage: float
    price: Decimal
    currency: str


class CertificatePurchaseDTO(DTOBase):
    id: int
    test_result_id: int
    subject_id: str
    amount: Decimal
    currency: str
    status: str
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    certificate_url: Optional[str] = None
    certificate_generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

"""
Booking DTOs
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from application.dtos.base import DTOBase


class BookingCreateDTO(BaseModel):
    test_id: int = Field(..., gt=0)
    subject_id: str = Field(..., min_length=1, max_length=64, description="SAP ID of a user or special user")
    is_reattempt: bool = False

    @field_validator("subject_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("subject_id must not be blank")
        return v


class BookingCancelDTO(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=64)


class BookingDTO(DTOBase):
    id: int
    test_id: int
    subject_id: str
    subject_kind: str
    status: str
    status_reason: Optional[str] = None
    transaction_id: Optional[str] = None
    is_reattempt: bool = False
    booked_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

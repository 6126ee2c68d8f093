"""
OTP DTOs
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from application.dtos.base import DTOBase


class OtpRequestDTO(BaseModel):
    email: EmailStr


class OtpVerifyDTO(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=4, max_length=10, pattern=r"^[0-9]+$")


class OtpIssuedDTO(DTOBase):
    email: str
    expires_at: datetime

"""
Accounts that can receive a one-time passcode.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from domain.payment.entity import _ensure_utc


class AccountKind(str, Enum):
    USER = "user"
    ORGANIZATION = "organization"


@dataclass
class Account:
    kind: AccountKind
    sap_id: str
    email: str
    otp_code: Optional[str] = None
    otp_expires_at: Optional[datetime] = None
    otp_verified: bool = False

    def __post_init__(self):
        self.email = self.email.strip().lower()
        self.otp_expires_at = _ensure_utc(self.otp_expires_at)

    def issue_otp(self, code: str, ttl: timedelta, now: Optional[datetime] = None) -> datetime:
        """Store a fresh code; any previous code stops working."""
        now = now or datetime.now(timezone.utc)
        self.otp_code = code
        self.otp_expires_at = now + ttl
        self.otp_verified = False
        return self.otp_expires_at

    def verify_otp(self, code: str, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if not self.otp_code or not code or not code.isascii() or self.otp_expires_at is None:
            return False
        if now > self.otp_expires_at:
            return False
        if not hmac.compare_digest(self.otp_code, code.strip()):
            return False
        self.otp_verified = True
        self.otp_code = None
        self.otp_expires_at = None
        return True

"""
Account repository port used by the OTP flow.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Account


class AccountRepository(ABC):

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Account]:
        """Find by lowercase email, users first, then organizations."""
        pass

    @abstractmethod
    async def save_otp_state(self, account: Account) -> Account:
        """Persist otp_code, otp_expires_at and otp_verified."""
        pass

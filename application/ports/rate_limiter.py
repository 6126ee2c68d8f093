"""
Rate limiter port used to throttle OTP issuance.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RateLimiter(Protocol):

    def is_allowed(self, email: str, ip: str) -> bool: ...

    def record_attempt(self, email: str, ip: str) -> None: ...

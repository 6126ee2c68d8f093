"""
Notification port. Delivery is asynchronous and may fail independently of the caller.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None: ...

    async def send_payment_receipt(self, email: str, receipt: dict[str, Any]) -> None: ...

    async def send_certificate(self, email: str, certificate_url: str, details: dict[str, Any]) -> None: ...

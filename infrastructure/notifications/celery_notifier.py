"""
Notifier that hands every email to a Celery task.

Enqueueing talks to the broker synchronously, so it runs in a worker thread.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from infrastructure.tasks.utils.dispatcher import TaskDispatcher


class CeleryEmailNotifier:

    def __init__(self, dispatcher: Optional[TaskDispatcher] = None) -> None:
        self._dispatcher = dispatcher or TaskDispatcher()

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        await asyncio.to_thread(self._dispatcher.send_otp_email, email, code, ttl_minutes)

    async def send_payment_receipt(self, email: str, receipt: dict[str, Any]) -> None:
        await asyncio.to_thread(self._dispatcher.send_payment_receipt_email, email, receipt)

    async def send_certificate(self, email: str, certificate_url: str, details: dict[str, Any]) -> None:
        await asyncio.to_thread(self._dispatcher.send_certificate_email, email, certificate_url, details)

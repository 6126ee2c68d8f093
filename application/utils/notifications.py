"""
Helpers for fire-and-forget notifications.
"""
from __future__ import annotations

from typing import Awaitable

from core.logging_config import get_logger


logger = get_logger(__name__)


async def notify_safely(send: Awaitable[None], *, kind: str, **context) -> bool:
    """Await a notification; failures are logged and reported as False, never raised."""
    try:
        await send
        return True
    except Exception as exc:
        logger.warning("notification_failed", kind=kind, error=str(exc), **context)
        return False

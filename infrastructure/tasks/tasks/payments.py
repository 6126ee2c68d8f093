"""
Celery tasks for payment reconciliation.
"""
from __future__ import annotations

import asyncio
from datetime import timedelta

from celery import shared_task

from core.config import settings
from core.logging_config import get_logger
from ..utils.base_task import BaseTask


logger = get_logger(__name__)


@shared_task(bind=True, base=BaseTask, max_retries=3, default_retry_delay=30)
def reconcile_pending_payments(self, min_age_minutes: int | None = None, limit: int = 100) -> dict:
    """Poll the provider for orders still pending after ``min_age_minutes``."""
    from infrastructure.container import build_container

    age = timedelta(minutes=min_age_minutes or settings.celery.reconcile_min_age_minutes)

    async def _run() -> int:
        container = build_container()
        try:
            return await container.settlement.reconcile_pending(age, limit=limit)
        finally:
            await container.aclose()

    try:
        settled = asyncio.run(_run())
    except Exception as exc:  # pragma: no cover
        logger.error("payment_reconcile_task_failed", error=str(exc))
        raise self.retry(exc=exc)
    return {"settled": settled}

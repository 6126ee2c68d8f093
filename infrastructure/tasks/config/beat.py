"""Celery beat schedule configuration."""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "reconcile-pending-payments": {
        "task": "infrastructure.tasks.tasks.payments.reconcile_pending_payments",
        "schedule": settings.celery.reconcile_interval_seconds,
        "kwargs": {"min_age_minutes": settings.celery.reconcile_min_age_minutes},
    },
}

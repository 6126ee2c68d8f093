"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict

from ..config.celery import celery_app


EMAIL_TASKS = "infrastructure.tasks.tasks.email"


class TaskDispatcher:
    """Internal facade used by the notifier to schedule tasks."""

    def send_otp_email(self, email: str, code: str, ttl_minutes: int) -> None:
        celery_app.send_task(
            f"{EMAIL_TASKS}.send_otp_email",
            kwargs={"email": email, "code": code, "ttl_minutes": ttl_minutes},
        )

    def send_payment_receipt_email(self, email: str, receipt: Dict[str, Any]) -> None:
        celery_app.send_task(
            f"{EMAIL_TASKS}.send_payment_receipt_email",
            kwargs={"email": email, "receipt": receipt},
        )

    def send_certificate_email(self, email: str, certificate_url: str, details: Dict[str, Any]) -> None:
        celery_app.send_task(
            f"{EMAIL_TASKS}.send_certificate_email",
            kwargs={"email": email, "certificate_url": certificate_url, "details": details},
        )

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Generic escape hatch for scheduling arbitrary tasks by name."""
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})

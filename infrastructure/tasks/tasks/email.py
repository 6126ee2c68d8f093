"""Email related Celery tasks.

Delivery is logged only; plug an SMTP or ESP client into ``_deliver``.
"""
from __future__ import annotations

from typing import Any

from celery import shared_task

from ..utils.base_task import BaseTask
from core.logging_config import get_logger

logger = get_logger(__name__)

_RETRY = dict(
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)


def _deliver(template: str, email: str, **context: Any) -> None:
    logger.info("email_delivered", template=template, email=email, **context)


@shared_task(**_RETRY)
def send_otp_email(self, email: str, code: str, ttl_minutes: int) -> None:
    """Send a login OTP. The code itself is never logged."""
    _deliver("otp", email, ttl_minutes=ttl_minutes, code_length=len(code))


@shared_task(**_RETRY)
def send_payment_receipt_email(self, email: str, receipt: dict) -> None:
    _deliver(
        "payment_receipt",
        email,
        transaction_id=receipt.get("transaction_id"),
        purpose=receipt.get("purpose"),
        amount=receipt.get("amount"),
        currency=receipt.get("currency"),
    )


@shared_task(**_RETRY)
def send_certificate_email(self, email: str, certificate_url: str, details: dict) -> None:
    _deliver("certificate", email, certificate_url=certificate_url, test=details.get("test"))

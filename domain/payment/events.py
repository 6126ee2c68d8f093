"""
Payment domain events.

Dataclass events record payment lifecycle facts for post-commit handling
(receipt emails, certificate generation). Domain remains free of
infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid

from .entity import PaymentPurpose


@dataclass
class PaymentEvent:
    transaction_id: str
    purpose: PaymentPurpose
    reference_id: int
    provider_payment_id: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentCompleted(PaymentEvent):
    pass


@dataclass
class PaymentFailed(PaymentEvent):
    reason: Optional[str] = None

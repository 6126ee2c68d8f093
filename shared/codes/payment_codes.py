"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    ORDER_NOT_FOUND = 60005
    ORDER_SETTLED = 60006


# Provider→internal status mapping
PROVIDER_STATUS_TO_INTERNAL = {
    "razorpay": {
        # Per payment entity status
        "created": "pending",
        "authorized": "completed",
        "captured": "completed",
        "failed": "failed",
    },
}

"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    TIMEOUT = 60003
    RATE_LIMITED = 60004


# Provider refund status -> internal gateway outcome.
# "succeeded" finalizes a refund, "failed" marks it failed, "pending" leaves it
# for a later reconciliation pass.
PROVIDER_REFUND_STATUS_TO_INTERNAL = {
    "stripe": {
        "pending": "pending",
        "requires_action": "pending",
        "succeeded": "succeeded",
        "failed": "failed",
        "canceled": "failed",
    },
    "fake": {
        "pending": "pending",
        "succeeded": "succeeded",
        "failed": "failed",
    },
}

"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Order lifecycle (2xxxx)
    ORDER_NOT_FOUND = 20100
    ORDER_ALREADY_COMMITTED = 20101
    ORDER_STATE_CONFLICT = 20102

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    INVOICE_PROVIDER_ERROR = 60010


# Provider→internal status mapping
PROVIDER_STATUS_TO_INTERNAL = {
    "ecpay": {
        # Per QueryTradeInfo TradeStatus
        "0": "pending",
        "1": "committed",
        "10200095": "failed",
        "10200163": "failed",
    },
}

"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Any, Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(provider: Optional[str] = None, **kwargs: Any) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name == "ecpay":
        from .ecpay import ECPayOptions, ECPayPayment
        return ECPayPayment(ECPayOptions.from_settings(payment_settings), **kwargs)
    raise ValueError(f"Unsupported payment provider: {name}")

"""
Factory for e-invoice gateway clients.
"""
from __future__ import annotations

from typing import Any, Optional

from application.ports.invoice_gateway import InvoiceGateway


def get_invoice_gateway(provider: Optional[str] = None, **kwargs: Any) -> InvoiceGateway:
    name = (provider or "ezpay").lower()
    if name == "ezpay":
        from .ezpay.gateway import EZPayInvoiceGateway, EZPayOptions
        return EZPayInvoiceGateway(EZPayOptions.from_settings(), **kwargs)
    raise ValueError(f"Unsupported invoice provider: {name}")

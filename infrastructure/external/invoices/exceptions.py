"""
Exceptions for invoice providers.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class InvoiceProviderError(BusinessException):
    """Remote invoice platform rejected the request (Status != SUCCESS)."""

    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.INVOICE_PROVIDER_ERROR,
            message=message,
            error_type="InvoiceProviderError",
            details=full_details,
        )

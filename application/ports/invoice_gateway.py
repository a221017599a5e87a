"""
Invoice gateway port (application/ports).
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.invoices import EZPayInvoiceIssueOptions
from domain.invoice.entity import Invoice


@runtime_checkable
class InvoiceGateway(Protocol):
    provider: str

    async def issue(self, options: EZPayInvoiceIssueOptions) -> Invoice: ...

    async def is_mobile_barcode_valid(self, code: str) -> bool: ...

    async def is_love_code_valid(self, code: str) -> bool: ...

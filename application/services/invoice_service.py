"""
Application service for e-invoice use-cases.
"""
from __future__ import annotations

from application.dtos.invoices import EZPayInvoiceIssueOptions, InvoiceSummary
from application.ports.invoice_gateway import InvoiceGateway
from core.logging_config import get_logger


logger = get_logger(__name__)


class InvoiceService:
    def __init__(self, gateway: InvoiceGateway) -> None:
        self.gateway = gateway

    async def issue(self, options: EZPayInvoiceIssueOptions) -> InvoiceSummary:
        logger.info("invoice_issue_request", provider=self.gateway.provider, order_id=options.order_id)
        invoice = await self.gateway.issue(options)
        return InvoiceSummary(
            invoice_number=invoice.invoice_number,
            random_code=invoice.random_code,
            issued_on=invoice.issued_on,
            issued_amount=invoice.issued_amount,
            order_id=invoice.order_id,
            provider=invoice.provider,
        )

    async def validate_love_code(self, code: str) -> bool:
        valid = await self.gateway.is_love_code_valid(code)
        logger.info("invoice_love_code_checked", provider=self.gateway.provider, valid=valid)
        return valid

    async def validate_mobile_barcode(self, code: str) -> bool:
        valid = await self.gateway.is_mobile_barcode_valid(code)
        logger.info("invoice_mobile_barcode_checked", provider=self.gateway.provider, valid=valid)
        return valid

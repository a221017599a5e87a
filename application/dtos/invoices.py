"""
Invoice DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain.invoice.entity import CustomsMark, InvoiceCarrier, InvoicePaymentItem


class EZPayInvoiceIssueOptions(BaseModel):
    """B2C when `vat_number` is empty, B2B otherwise."""

    order_id: str
    items: list[InvoicePaymentItem] = Field(min_length=1)
    buyer_name: str = ""
    buyer_email: Optional[str] = None
    buyer_address: Optional[str] = None
    vat_number: Optional[str] = None
    carrier: Optional[InvoiceCarrier] = None
    customs_mark: Optional[CustomsMark] = None
    special_tax_percentage: Optional[float] = None
    remark: Optional[str] = None
    ezpay_trans_number: Optional[str] = None


class InvoiceSummary(BaseModel):
    invoice_number: str
    random_code: str
    issued_on: datetime
    issued_amount: int
    order_id: Optional[str] = None
    provider: str

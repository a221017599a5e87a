"""
Invoice API routes (EZPay).
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from application.dtos.invoices import EZPayInvoiceIssueOptions
from application.services.invoice_service import InvoiceService
from api.dependencies import get_invoice_service
from core.response import success_response


router = APIRouter(prefix="/invoices/ezpay", tags=["Invoices"])


@router.post("", summary="Issue invoice")
async def issue_invoice(payload: EZPayInvoiceIssueOptions, service: InvoiceService = Depends(get_invoice_service)):
    summary = await service.issue(payload)
    return success_response(data=summary.model_dump(mode="json"), message="Invoice issued")


@router.get("/love-codes/{code}", summary="Validate love code")
async def validate_love_code(code: str, service: InvoiceService = Depends(get_invoice_service)):
    valid = await service.validate_love_code(code)
    return success_response(data={"code": code, "valid": valid})


@router.get("/mobile-barcodes", summary="Validate mobile barcode carrier")
async def validate_mobile_barcode(
    code: str = Query(..., description="Barcode starts with `/`, so it travels as a query parameter"),
    service: InvoiceService = Depends(get_invoice_service),
):
    valid = await service.validate_mobile_barcode(code)
    return success_response(data={"code": code, "valid": valid})

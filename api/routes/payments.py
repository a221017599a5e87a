"""
Payments API routes.

Merchant-facing endpoints to prepare ECPay orders and query their remote
status. The ECPay callback/checkout endpoints are mounted separately by the
gateway itself. Keep this thin: no signing details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from application.dtos.payments import ECPayOrderInput
from application.services.payment_service import PaymentService
from api.dependencies import get_payment_service
from core.response import success_response


router = APIRouter(prefix="/payments/ecpay", tags=["Payments"])


@router.post("/orders", summary="Prepare ECPay order")
async def prepare_order(payload: ECPayOrderInput, service: PaymentService = Depends(get_payment_service)):
    summary = service.prepare_order(payload)
    return success_response(data=summary.model_dump(mode="json"), message="Order prepared")


@router.get("/orders/{order_id}", summary="Query ECPay order")
async def query_order(
    order_id: str = Path(..., max_length=20),
    service: PaymentService = Depends(get_payment_service),
):
    summary = await service.query_order(order_id)
    return success_response(data=summary.model_dump(mode="json"), message="Order status")

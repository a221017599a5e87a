"""
Application service orchestrating payment use-cases.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks), keeping dependencies one-way.
"""
from __future__ import annotations

from typing import Optional

from application.dtos.payments import ECPayOrderInput, OrderSummary
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.payment.entity import PaymentOrder


logger = get_logger(__name__)


def to_summary(order: PaymentOrder, checkout_url: Optional[str] = None) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        provider=order.provider,
        total_price=order.total_price,
        state=order.state.value,
        commitable=order.commitable,
        payment_type=order.payment_type,
        platform_trade_number=order.platform_trade_number,
        created_at=order.created_at,
        committed_at=order.committed_at,
        checkout_url=checkout_url,
        remote_status=getattr(order, "remote_status", None),
    )


class PaymentService:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    def prepare_order(self, order_input: ECPayOrderInput) -> OrderSummary:
        logger.info(
            "payment_prepare_request",
            provider=self.gateway.provider,
            order_id=order_input.id,
            items=len(order_input.items),
        )
        order = self.gateway.prepare(order_input)
        return to_summary(order, checkout_url=self.gateway.get_checkout_url(order))

    async def query_order(self, order_id: str) -> OrderSummary:
        logger.info("payment_query_request", provider=self.gateway.provider, order_id=order_id)
        order = await self.gateway.query(order_id)
        logger.info(
            "payment_query_response",
            provider=self.gateway.provider,
            order_id=order.id,
            state=order.state.value,
            remote_status=getattr(order, "remote_status", None),
        )
        return to_summary(order)

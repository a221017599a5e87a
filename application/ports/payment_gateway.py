"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import ECPayOrderInput
from domain.payment.entity import PaymentOrder


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    `prepare` is synchronous (pure signing + caching); `query` performs IO.
    """

    provider: str

    def prepare(self, order_input: ECPayOrderInput) -> PaymentOrder: ...

    async def query(self, order_id: str) -> PaymentOrder: ...

    def get_checkout_url(self, order: PaymentOrder) -> str: ...

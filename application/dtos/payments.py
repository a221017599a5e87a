"""
Payment DTOs (Pydantic v2) used at application boundaries.

Channel-specific options are validated by the gateway at prepare time so that
each violated constraint surfaces with its own message, in a fixed order.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.payment.entity import Channel, OrderItem, PaymentPeriodType


class OrderItemInput(BaseModel):
    name: str = Field(min_length=1)
    unit_price: int = Field(ge=0)
    quantity: int = Field(gt=0)
    unit: Optional[str] = None
    tax_type: Optional[str] = None
    remark: Optional[str] = None

    def to_entity(self) -> OrderItem:
        return OrderItem(
            name=self.name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            unit=self.unit,
            tax_type=self.tax_type,
            remark=self.remark,
        )


class PaymentPeriod(BaseModel):
    amount_per_period: int = Field(gt=0)
    type: PaymentPeriodType
    frequency: Optional[int] = None
    times: int


class ECPayOrderInput(BaseModel):
    """Order input; `channel=None` lets the buyer choose any method on ECPay."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, max_length=20, pattern=r"^[0-9A-Za-z]+$")
    items: list[OrderItemInput] = Field(min_length=1)
    description: Optional[str] = None
    client_back_url: Optional[str] = None
    channel: Optional[Channel] = None

    # Credit card options
    memory: bool = False
    member_id: Optional[str] = None
    allow_union_pay: bool = False
    allow_credit_card_redeem: bool = False
    installments: Optional[str] = None
    period: Optional[PaymentPeriod] = None

    # Virtual account options
    virtual_account_expire_days: Optional[int] = None


class CreditCardOrderInput(ECPayOrderInput):
    channel: Literal[Channel.CREDIT_CARD] = Channel.CREDIT_CARD


class VirtualAccountOrderInput(ECPayOrderInput):
    channel: Literal[Channel.VIRTUAL_ACCOUNT] = Channel.VIRTUAL_ACCOUNT


class OrderSummary(BaseModel):
    id: str
    provider: str
    total_price: int
    state: str
    commitable: bool
    payment_type: Optional[str] = None
    platform_trade_number: Optional[str] = None
    created_at: datetime
    committed_at: Optional[datetime] = None
    checkout_url: Optional[str] = None
    remote_status: Optional[str] = None

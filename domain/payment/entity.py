"""
支付领域实体 - 订单聚合根
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from domain.common.exceptions import (
    DomainValidationException,
    OrderAlreadyCommittedException,
    OrderStateConflictException,
)
from domain.payment.events import OrderCommitted, PaymentEvent


# 虚拟账号已取号、尚未入账时记录的支付方式
VIRTUAL_ACCOUNT_WAITING = "VIRTUAL_ACCOUNT_WAITING"


class Channel(str, Enum):
    """支付渠道"""
    CREDIT_CARD = "credit_card"
    WEB_ATM = "web_atm"
    VIRTUAL_ACCOUNT = "virtual_account"
    CVS_KIOSK = "cvs_kiosk"
    CVS_BARCODE = "cvs_barcode"


class PaymentPeriodType(str, Enum):
    """定期定额周期单位"""
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class OrderState(str, Enum):
    """订单状态：PENDING -> COMMITTED（终态）"""
    PENDING = "pending"
    COMMITTED = "committed"


@dataclass(frozen=True)
class OrderItem:
    name: str
    unit_price: int
    quantity: int
    unit: Optional[str] = None
    tax_type: Optional[str] = None
    remark: Optional[str] = None


@dataclass(frozen=True)
class CommitMessage:
    """网关回调转换后的提交消息"""
    id: str
    total_price: int
    committed_at: Optional[datetime]
    merchant_id: str
    trade_number: str
    trade_date: datetime
    payment_type: str


@dataclass(frozen=True)
class VirtualAccountCommitMessage(CommitMessage):
    pass


@dataclass(frozen=True)
class CreditCardCommitMessage(CommitMessage):
    pass


@dataclass(frozen=True)
class VirtualAccountInfo:
    bank_code: str
    account: str
    expired_at: Optional[datetime] = None


@dataclass(frozen=True)
class CreditCardAuthInfo:
    process_date: Optional[datetime]
    auth_code: str
    amount: int
    eci: Optional[int]
    card4_number: str
    card6_number: str


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class PaymentOrder:
    """
    订单聚合根 - 管理单笔支付订单的生命周期

    业务规则：
    1. 终态提交（committed_at 非空）最多发生一次，之后的提交一律拒绝
    2. 虚拟账号订单可先收到取号通知（committed_at 为空），此时仅记录
       VIRTUAL_ACCOUNT_WAITING 与账号信息，订单仍可提交
    3. 已记录具体支付方式的订单不可再回到等待状态
    """

    provider: str = "base"

    def __init__(
        self,
        *,
        id: str,
        items: Sequence[OrderItem],
        created_at: Optional[datetime] = None,
        committed_at: Optional[datetime] = None,
        payment_type: Optional[str] = None,
        platform_trade_number: Optional[str] = None,
        publisher: Optional[Callable[[PaymentEvent], None]] = None,
    ) -> None:
        if not items:
            raise DomainValidationException("Order should contain at least one item", field="items")
        self.id = id
        self.items = list(items)
        self.created_at = _ensure_utc(created_at) or datetime.now(timezone.utc)
        self.payment_type = payment_type
        self.platform_trade_number = platform_trade_number
        self.additional_info: Any = None
        self._committed_at = _ensure_utc(committed_at)
        self._commitable = committed_at is None
        self._publisher = publisher
        self._lock = threading.Lock()

    @property
    def total_price(self) -> int:
        return sum(item.unit_price * item.quantity for item in self.items)

    @property
    def committed_at(self) -> Optional[datetime]:
        return self._committed_at

    @property
    def commitable(self) -> bool:
        return self._commitable

    @property
    def state(self) -> OrderState:
        return OrderState.PENDING if self._committed_at is None else OrderState.COMMITTED

    def commit(self, message: CommitMessage, additional_info: Any = None) -> None:
        """
        提交订单

        业务规则：只允许从 PENDING 提交一次；重复投递的回调在此被拒绝
        """
        with self._lock:
            if not self._commitable:
                raise OrderAlreadyCommittedException(self.id)

            if self.payment_type is not None and self.payment_type != VIRTUAL_ACCOUNT_WAITING:
                raise OrderStateConflictException(
                    self.id,
                    recorded=self.payment_type,
                    incoming=message.payment_type,
                )

            if message.committed_at is None:
                if not isinstance(message, VirtualAccountCommitMessage):
                    raise DomainValidationException(
                        "Only virtual account notification may omit `committed_at`",
                        field="committed_at",
                    )
                self.payment_type = VIRTUAL_ACCOUNT_WAITING
                self.platform_trade_number = message.trade_number
                self.additional_info = additional_info
                return

            self._committed_at = _ensure_utc(message.committed_at)
            self.payment_type = message.payment_type
            self.platform_trade_number = message.trade_number
            self.additional_info = additional_info
            self._commitable = False

        if self._publisher is not None:
            self._publisher(
                OrderCommitted(
                    order_id=self.id,
                    provider=self.provider,
                    provider_ref=self.platform_trade_number,
                    order=self,
                )
            )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} state={self.state.value} total={self.total_price}>"

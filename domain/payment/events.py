"""
Payment domain events.

Dataclass events record important payment lifecycle facts for downstream handling
(e.g., subscribers registered on a gateway). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import uuid


@dataclass
class PaymentEvent:
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), kw_only=True)


@dataclass
class OrderCommitted(PaymentEvent):
    order_id: str
    provider: str
    provider_ref: Optional[str] = None
    order: Any = None


@dataclass
class ServerListened(PaymentEvent):
    host: str
    port: int


@dataclass
class OrderPaymentFailed(PaymentEvent):
    """支付通知返回失败码；订单保持 PENDING，由订阅方决定后续处理"""

    order_id: str
    provider: str
    rtn_code: Any = None
    rtn_msg: Optional[str] = None
    order: Any = None

"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    """订单不存在或已过期（两者不作区分）"""

    def __init__(self, order_id: Optional[str] = None):
        details = {"order_id": order_id} if order_id else None
        super().__init__(
            code=PaymentCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details=details,
        )


class OrderAlreadyCommittedException(BusinessException):
    """订单已提交，拒绝重复提交"""

    def __init__(self, order_id: str):
        super().__init__(
            code=PaymentCode.ORDER_ALREADY_COMMITTED,
            message=f"Order {order_id} already committed",
            error_type="OrderAlreadyCommitted",
            details={"order_id": order_id},
        )


class OrderStateConflictException(BusinessException):
    """回调携带的支付方式与订单已记录的支付方式冲突"""

    def __init__(self, order_id: str, *, recorded: Optional[str], incoming: Optional[str]):
        super().__init__(
            code=PaymentCode.ORDER_STATE_CONFLICT,
            message=f"Order {order_id} payment type conflict",
            error_type="OrderStateConflict",
            details={"order_id": order_id, "recorded": recorded, "incoming": incoming},
        )

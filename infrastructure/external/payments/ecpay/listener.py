"""
ECPay inbound listener.

Two endpoints:
- GET  {checkout_path}/{order_id}: serves the auto-submitting checkout form of a pending order
- POST {callback_path}: server-to-server notification that commits the order

ECPay only treats a `1|OK` text body as acknowledged; anything else makes it
retry the notification later.
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from core.logging_config import get_logger
from domain.common.exceptions import (
    DomainValidationException,
    OrderAlreadyCommittedException,
    OrderStateConflictException,
)
from domain.payment.entity import (
    VIRTUAL_ACCOUNT_WAITING,
    CreditCardAuthInfo,
    CreditCardCommitMessage,
    VirtualAccountCommitMessage,
    VirtualAccountInfo,
)
from domain.payment.events import OrderPaymentFailed
from infrastructure.external.payments.ecpay.constants import (
    ACK_CHECKSUM_INVALID,
    ACK_OK,
    ACK_ORDER_NOT_FOUND,
    NUMERIC_CALLBACK_KEYS,
    RTN_CODE_PAID,
    RTN_CODE_VIRTUAL_ACCOUNT_ISSUED,
    VIRTUAL_ACCOUNT_PAYMENT_TYPES,
    ECPayCallbackPaymentType,
)
from infrastructure.external.payments.ecpay.utils import now_in_taipei, parse_datetime

if TYPE_CHECKING:
    from infrastructure.external.payments.ecpay.gateway import ECPayPayment
    from infrastructure.external.payments.ecpay.order import ECPayOrder


logger = get_logger(__name__)


def match_checkout_path(checkout_path: str, path: str) -> Optional[str]:
    """Return the order id when `path` is `{checkout_path}/{order_id}`, else None."""
    prefix = re.escape(checkout_path.rstrip("/"))
    m = re.fullmatch(rf"{prefix}/([^/]+)", path)
    return m.group(1) if m else None


def _to_number(value: str) -> Union[int, float, str]:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def coerce_callback_payload(raw: dict[str, str]) -> dict[str, Any]:
    return {k: _to_number(v) if k in NUMERIC_CALLBACK_KEYS else v for k, v in raw.items()}


def _reject(body: str, **log_kwargs: Any) -> PlainTextResponse:
    logger.warning("ecpay_callback_rejected", reason=body, **log_kwargs)
    return PlainTextResponse(body, status_code=400)


class ECPayCallbackListener:
    def __init__(self, gateway: "ECPayPayment") -> None:
        self._gateway = gateway
        self.router = self._build_router()

    def _build_router(self) -> APIRouter:
        options = self._gateway.options
        router = APIRouter(tags=["ECPay"])

        async def checkout(order_id: str) -> Response:
            return self.handle_checkout(order_id)

        async def callback(request: Request) -> Response:
            body = await request.body()
            return self.handle_callback(body)

        router.add_api_route(
            f"{options.checkout_path}/{{order_id}}", checkout, methods=["GET"], include_in_schema=False
        )
        router.add_api_route(options.callback_path, callback, methods=["POST"], include_in_schema=False)
        return router

    def handle_checkout(self, order_id: str) -> Response:
        order = self._gateway.pending_orders.get(order_id)
        if order is None or order.form is None:
            return Response(status_code=404)
        return HTMLResponse(order.form_html)

    def handle_callback(self, body: bytes) -> Response:
        try:
            raw = dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError:
            return _reject(ACK_CHECKSUM_INVALID, error="body is not valid utf-8")
        order_id = raw.get("MerchantTradeNo", "")

        # MAC is computed over the string values ECPay sent
        if not self._gateway.codec.verify(raw):
            return _reject(ACK_CHECKSUM_INVALID, order_id=order_id)

        payload = coerce_callback_payload(raw)
        order = self._gateway.pending_orders.get(order_id)
        if order is None or not order.commitable:
            return _reject(ACK_ORDER_NOT_FOUND, order_id=order_id)

        payment_type = str(payload.get("PaymentType", ""))
        rtn_code = payload.get("RtnCode")

        try:
            if payment_type in VIRTUAL_ACCOUNT_PAYMENT_TYPES:
                if order.payment_type is not None and order.payment_type != VIRTUAL_ACCOUNT_WAITING:
                    return _reject(ACK_ORDER_NOT_FOUND, order_id=order_id, recorded=order.payment_type)
                if rtn_code not in (None, "", RTN_CODE_PAID, RTN_CODE_VIRTUAL_ACCOUNT_ISSUED):
                    return self._acknowledge_failure(order, rtn_code, payload)
                message, info = self._virtual_account_commit(order, payload)
            elif payment_type == ECPayCallbackPaymentType.CREDIT_CARD.value:
                if rtn_code not in (None, "", RTN_CODE_PAID):
                    return self._acknowledge_failure(order, rtn_code, payload)
                message, info = self._credit_card_commit(order, payload)
            else:
                return _reject(ACK_ORDER_NOT_FOUND, order_id=order_id, payment_type=payment_type)
        except ValueError as exc:
            return _reject(ACK_ORDER_NOT_FOUND, order_id=order_id, error=str(exc))

        try:
            order.commit(message, info)
        except (OrderAlreadyCommittedException, OrderStateConflictException, DomainValidationException) as exc:
            return _reject(ACK_ORDER_NOT_FOUND, order_id=order_id, error=exc.message)

        logger.info(
            "ecpay_callback_accepted",
            order_id=order_id,
            payment_type=order.payment_type,
            state=order.state.value,
        )
        return PlainTextResponse(ACK_OK)

    def _acknowledge_failure(self, order: "ECPayOrder", rtn_code: Any, payload: dict[str, Any]) -> PlainTextResponse:
        # Order stays pending; subscribers of OrderPaymentFailed decide what to do with it
        rtn_msg = payload.get("RtnMsg")
        logger.warning("ecpay_callback_payment_failed", order_id=order.id, rtn_code=rtn_code, rtn_msg=rtn_msg)
        self._gateway.publish(
            OrderPaymentFailed(
                order_id=order.id,
                provider=order.provider,
                rtn_code=rtn_code,
                rtn_msg=str(rtn_msg) if rtn_msg is not None else None,
                order=order,
            )
        )
        return PlainTextResponse(ACK_OK)

    def _virtual_account_commit(
        self, order: "ECPayOrder", payload: dict[str, Any]
    ) -> tuple[VirtualAccountCommitMessage, VirtualAccountInfo]:
        rtn_code = payload.get("RtnCode")
        waiting = rtn_code == RTN_CODE_VIRTUAL_ACCOUNT_ISSUED or not payload.get("PaymentDate")

        message = VirtualAccountCommitMessage(
            id=str(payload.get("MerchantTradeNo", "")),
            total_price=int(payload.get("TradeAmt") or order.total_price),
            committed_at=None if waiting else parse_datetime(payload.get("PaymentDate")),
            merchant_id=str(payload.get("MerchantID", "")),
            trade_number=str(payload.get("TradeNo", "")),
            trade_date=parse_datetime(payload.get("TradeDate")) or now_in_taipei(),
            payment_type=str(payload["PaymentType"]),
        )

        # Paid notifications omit the account fields, keep the ones from the issuing notice
        if not payload.get("BankCode") and isinstance(order.additional_info, VirtualAccountInfo):
            info = order.additional_info
        else:
            info = VirtualAccountInfo(
                bank_code=str(payload.get("BankCode", "")),
                account=str(payload.get("vAccount", "")),
                expired_at=parse_datetime(payload.get("ExpireDate")),
            )
        return message, info

    def _credit_card_commit(
        self, order: "ECPayOrder", payload: dict[str, Any]
    ) -> tuple[CreditCardCommitMessage, CreditCardAuthInfo]:
        message = CreditCardCommitMessage(
            id=str(payload.get("MerchantTradeNo", "")),
            total_price=int(payload.get("TradeAmt") or order.total_price),
            committed_at=parse_datetime(payload.get("PaymentDate")) or now_in_taipei(),
            merchant_id=str(payload.get("MerchantID", "")),
            trade_number=str(payload.get("TradeNo", "")),
            trade_date=parse_datetime(payload.get("TradeDate")) or now_in_taipei(),
            payment_type=str(payload["PaymentType"]),
        )

        eci = payload.get("eci")
        info = CreditCardAuthInfo(
            process_date=parse_datetime(payload.get("process_date")),
            auth_code=str(payload.get("auth_code", "")),
            amount=int(payload.get("amount") or message.total_price),
            eci=eci if isinstance(eci, int) else None,
            card4_number=str(payload.get("card4no", "")),
            card6_number=str(payload.get("card6no", "")),
        )
        return message, info

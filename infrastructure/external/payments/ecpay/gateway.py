"""
ECPay AIO payment gateway.

Prepares signed checkout forms, keeps pending orders in a TTL cache, queries
ECPay for authoritative trade status and owns the callback listener that
commits orders when ECPay notifies the merchant.
"""
from __future__ import annotations

import asyncio
import re
import secrets
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Iterable, Optional, Union
from urllib.parse import parse_qsl, urlparse

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field, field_validator

from application.dtos.payments import ECPayOrderInput
from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentSettings, PaymentTimeouts, payment_settings
from domain.common.exceptions import DomainValidationException
from domain.payment.entity import Channel, OrderItem, PaymentPeriodType
from domain.payment.events import OrderCommitted, OrderPaymentFailed, PaymentEvent, ServerListened
from infrastructure.external.payments.base import BaseGatewayClient
from infrastructure.external.payments.ecpay.cache import PendingOrderCache
from infrastructure.external.payments.ecpay.codec import CheckMacCodec
from infrastructure.external.payments.ecpay.constants import (
    CHECKOUT_ENDPOINT,
    DEFAULT_VIRTUAL_ACCOUNT_EXPIRE_DAYS,
    ECPAY_CHANNEL,
    ECPAY_PERIOD_TYPE,
    FAKE_ITEM_NAME,
    QUERY_ENDPOINT,
)
from infrastructure.external.payments.ecpay.listener import ECPayCallbackListener
from infrastructure.external.payments.ecpay.order import ECPayOrder
from infrastructure.external.payments.ecpay.utils import format_datetime, now_in_taipei, parse_datetime
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentSignatureError


logger = get_logger(__name__)

CommitHandler = Callable[[ECPayOrder], None]
ListenHandler = Callable[[ServerListened], None]
FailureHandler = Callable[[OrderPaymentFailed], None]

_INSTALLMENTS_RE = re.compile(r"[1-9][0-9]*(,[1-9][0-9]*)*")

# (frequency min, frequency max, times max) per period unit
_PERIOD_BOUNDS = {
    PaymentPeriodType.DAY: (1, 365, 999),
    PaymentPeriodType.MONTH: (1, 12, 99),
    PaymentPeriodType.YEAR: (1, 1, 9),
}


class ECPayOptions(BaseModel):
    """Immutable gateway configuration, fixed at construction."""

    model_config = ConfigDict(frozen=True)

    language: str = ""
    base_url: str = "https://payment-stage.ecpay.com.tw"
    merchant_id: str = "2000132"
    merchant_check_code: str = "59997889"
    hash_key: str = "5294y06JbISpM5x9"
    hash_iv: str = "v77hoKGq4kWxNNIS"
    server_host: str = "http://localhost:3000"
    callback_path: str = "/payments/ecpay/callback"
    checkout_path: str = "/payments/ecpay/checkout"
    ttl: int = Field(default=10 * 60, gt=0)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    @field_validator("base_url", "server_host")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("callback_path", "checkout_path")
    @classmethod
    def _normalize_path(cls, v: str) -> str:
        v = "/" + v.strip("/")
        if v == "/":
            raise ValueError("path must not be empty")
        return v

    @classmethod
    def from_settings(cls, settings: PaymentSettings = payment_settings) -> "ECPayOptions":
        return cls(
            **settings.ecpay.model_dump(),
            timeouts=settings.timeouts,
            retry=settings.retry,
        )


def _as_list(handlers: Union[None, Callable, Iterable[Callable]]) -> list[Callable]:
    if handlers is None:
        return []
    if callable(handlers):
        return [handlers]
    return list(handlers)


class ECPayPayment(BaseGatewayClient):
    provider = "ecpay"

    def __init__(
        self,
        options: Optional[ECPayOptions] = None,
        *,
        on_commit: Union[None, CommitHandler, Iterable[CommitHandler]] = None,
        on_server_listen: Union[None, ListenHandler, Iterable[ListenHandler]] = None,
        on_payment_failed: Union[None, FailureHandler, Iterable[FailureHandler]] = None,
        app: Optional[FastAPI] = None,
        with_server: bool = False,
        transport=None,
    ) -> None:
        self.options = options or ECPayOptions.from_settings()
        super().__init__(
            timeouts=self.options.timeouts.model_dump(),
            retry={"max": self.options.retry.max, "base": self.options.retry.base_backoff},
            transport=transport,
        )
        self.codec = CheckMacCodec(self.options.hash_key, self.options.hash_iv)
        self.pending_orders: PendingOrderCache[ECPayOrder] = PendingOrderCache(ttl=self.options.ttl)
        self._commit_handlers = _as_list(on_commit)
        self._listen_handlers = _as_list(on_server_listen)
        self._failure_handlers = _as_list(on_payment_failed)
        self.listener = ECPayCallbackListener(self)
        self._app = app
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task] = None

        if app is not None:
            app.include_router(self.listener.router)

        if with_server:
            try:
                asyncio.get_running_loop()
            except RuntimeError as exc:
                raise RuntimeError(
                    "with_server=True requires a running event loop; call `await gateway.serve()` instead"
                ) from exc
            self._server_task = asyncio.create_task(self.serve())

    # Events
    def publish(self, event: PaymentEvent) -> None:
        if isinstance(event, OrderCommitted):
            self._log("ecpay_order_committed", order_id=event.order_id, trade_no=event.provider_ref)
            handlers, arg = self._commit_handlers, event.order
        elif isinstance(event, ServerListened):
            self._log("ecpay_server_listened", host=event.host, port=event.port)
            handlers, arg = self._listen_handlers, event
        elif isinstance(event, OrderPaymentFailed):
            self._log("ecpay_order_payment_failed", order_id=event.order_id, rtn_code=event.rtn_code)
            handlers, arg = self._failure_handlers, event
        else:
            return
        for handler in handlers:
            try:
                handler(arg)
            except Exception:
                logger.exception("ecpay_event_handler_failed", event=type(event).__name__)

    # Addresses
    @property
    def checkout_action_url(self) -> str:
        return f"{self.options.base_url}{CHECKOUT_ENDPOINT}"

    @property
    def callback_url(self) -> str:
        return f"{self.options.server_host}{self.options.callback_path}"

    def get_checkout_url(self, order: ECPayOrder) -> str:
        return f"{self.options.server_host}{self.options.checkout_path}/{order.id}"

    # Orders
    @staticmethod
    def _generate_order_id() -> str:
        return secrets.token_hex(10)

    @staticmethod
    def _validate(order_input: ECPayOrderInput) -> None:
        channel = order_input.channel
        credit_allowed = channel is None or channel == Channel.CREDIT_CARD
        expire_days = order_input.virtual_account_expire_days

        if expire_days is not None and channel is not None and channel != Channel.VIRTUAL_ACCOUNT:
            raise DomainValidationException(
                "`virtual_account_expire_days` only works on virtual account channel",
                field="virtual_account_expire_days",
            )

        if expire_days is not None and not 1 <= expire_days <= 60:
            raise DomainValidationException(
                "`virtual_account_expire_days` should be between 1 and 60 days",
                field="virtual_account_expire_days",
            )

        if order_input.memory and not credit_allowed:
            raise DomainValidationException("`memory` only works on credit card channel", field="memory")

        if order_input.memory and not order_input.member_id:
            raise DomainValidationException("Memory card should provide `member_id`", field="member_id")

        if order_input.allow_union_pay and not credit_allowed:
            raise DomainValidationException("Union Pay should use credit card channel", field="allow_union_pay")

        if order_input.allow_credit_card_redeem and not credit_allowed:
            raise DomainValidationException(
                "`allow_credit_card_redeem` should use credit card channel",
                field="allow_credit_card_redeem",
            )

        if order_input.installments:
            if not credit_allowed:
                raise DomainValidationException("`installments` should use credit card channel", field="installments")
            if order_input.allow_credit_card_redeem:
                raise DomainValidationException(
                    "`installments` should not work with `allow_credit_card_redeem`",
                    field="installments",
                )
            if order_input.period:
                raise DomainValidationException("`installments` should not work with `period`", field="installments")
            if not _INSTALLMENTS_RE.fullmatch(order_input.installments):
                raise DomainValidationException(
                    "`installments` format invalid, example: 3,6,9,12",
                    field="installments",
                )

        period = order_input.period
        if period:
            if not credit_allowed:
                raise DomainValidationException("`period` should use credit card channel", field="period")

            freq_min, freq_max, times_max = _PERIOD_BOUNDS[period.type]
            unit = period.type.name

            if period.frequency is not None:
                if period.type == PaymentPeriodType.YEAR and period.frequency != 1:
                    raise DomainValidationException(
                        "`period.frequency` should be 1 when `period.type` set to YEAR",
                        field="period.frequency",
                    )
                if not freq_min <= period.frequency <= freq_max:
                    raise DomainValidationException(
                        f"`period.frequency` should be between {freq_min} and {freq_max} when `period.type` set to {unit}",
                        field="period.frequency",
                    )

            if period.times < 1:
                raise DomainValidationException("Invalid `period.times`, should >= 1", field="period.times")

            if period.times > times_max:
                raise DomainValidationException(
                    f"`period.times` should be below {times_max} when `period.type` set to {unit}",
                    field="period.times",
                )

    def _build_payload(self, order_id: str, order_input: ECPayOrderInput, total: int) -> dict[str, str]:
        channel = order_input.channel
        payload = {
            "MerchantID": self.options.merchant_id,
            "MerchantTradeNo": order_id,
            "MerchantTradeDate": format_datetime(now_in_taipei()),
            "PaymentType": "aio",
            "TotalAmount": str(total),
            "TradeDesc": order_input.description or "-",
            "ItemName": "#".join(f"{item.name} x{item.quantity}" for item in order_input.items),
            "ReturnURL": self.callback_url,
            "ChoosePayment": ECPAY_CHANNEL[channel] if channel else "ALL",
            "NeedExtraPaidInfo": "Y",
            "EncryptType": "1",
            "OrderResultURL": order_input.client_back_url or "",
            "Language": self.options.language,
        }

        if channel is None or channel == Channel.CREDIT_CARD:
            if order_input.memory:
                payload["BindingCard"] = "1"
                payload["MerchantMemberID"] = order_input.member_id or ""
            if order_input.allow_credit_card_redeem:
                payload["Redeem"] = "Y"
            if order_input.allow_union_pay:
                payload["UnionPay"] = "0"
            if order_input.installments:
                payload["CreditInstallment"] = order_input.installments
            if order_input.period:
                period = order_input.period
                payload["PeriodAmount"] = str(period.amount_per_period)
                payload["PeriodType"] = ECPAY_PERIOD_TYPE[period.type]
                payload["Frequency"] = str(period.frequency or 1)
                payload["ExecTimes"] = str(period.times)
                payload["PeriodReturnURL"] = self.callback_url

        if channel is None or channel == Channel.VIRTUAL_ACCOUNT:
            if order_input.virtual_account_expire_days:
                payload["ExpireDate"] = str(order_input.virtual_account_expire_days)
            elif channel == Channel.VIRTUAL_ACCOUNT:
                payload["ExpireDate"] = str(DEFAULT_VIRTUAL_ACCOUNT_EXPIRE_DAYS)
            payload["PaymentInfoURL"] = self.callback_url
            payload["ClientRedirectURL"] = order_input.client_back_url or ""

        return payload

    def prepare(self, order_input: ECPayOrderInput) -> ECPayOrder:
        self._validate(order_input)

        order_id = order_input.id or self._generate_order_id()
        items = [item.to_entity() for item in order_input.items]
        total = sum(item.unit_price * item.quantity for item in items)

        order = ECPayOrder(
            gateway=self,
            id=order_id,
            items=items,
            form=self.codec.attach(self._build_payload(order_id, order_input, total)),
        )
        self.pending_orders.set(order.id, order)
        self._log(
            "ecpay_order_prepared",
            order_id=order.id,
            total=order.total_price,
            channel=order_input.channel.value if order_input.channel else "all",
        )
        return order

    async def query(self, order_id: str) -> ECPayOrder:
        payload = self.codec.attach({
            "MerchantID": self.options.merchant_id,
            "MerchantTradeNo": order_id,
            "PlatformID": "",
            "TimeStamp": str(int(time.time())),
        })
        self._log("ecpay_query_request", order_id=order_id)
        resp = await self._post(f"{self.options.base_url}{QUERY_ENDPOINT}", data=payload)

        response = dict(parse_qsl(resp.text, keep_blank_values=True))
        if not self.codec.verify(response):
            raise PaymentSignatureError("Invalid CheckSum", provider=self.provider, details={"order_id": order_id})

        merchant_trade_no = response.get("MerchantTradeNo")
        if not merchant_trade_no:
            raise PaymentProviderError("Malformed query response", provider=self.provider, details={"order_id": order_id})

        try:
            trade_amount = int(response.get("TradeAmt") or 0)
            created_at: Optional[datetime] = parse_datetime(response.get("TradeDate"))
            committed_at = parse_datetime(response.get("PaymentDate"))
        except ValueError as exc:
            raise PaymentProviderError(str(exc), provider=self.provider, details={"order_id": order_id}) from exc

        order = ECPayOrder(
            gateway=self,
            id=merchant_trade_no,
            items=[OrderItem(name=FAKE_ITEM_NAME, unit_price=trade_amount, quantity=1)],
            created_at=created_at,
            committed_at=committed_at,
            payment_type=response.get("PaymentType") or None,
            platform_trade_number=response.get("TradeNo") or None,
            remote_status=self._map_status(response.get("TradeStatus", "")),
        )
        self._log("ecpay_query_response", order_id=order.id, status=order.remote_status, state=order.state.value)
        return order

    # Listener
    @property
    def router(self):
        return self.listener.router

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            self._app = self._build_app()
        return self._app

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            url = urlparse(self.options.server_host)
            self.publish(ServerListened(host=url.hostname or "0.0.0.0", port=url.port or 3000))
            yield

        app = FastAPI(
            title="ECPay callback listener",
            lifespan=lifespan,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
        app.include_router(self.listener.router)
        return app

    async def serve(self) -> None:
        """Run the owned callback listener on the server host port until shutdown."""
        port = urlparse(self.options.server_host).port or 3000
        config = uvicorn.Config(self.app, host="0.0.0.0", port=port, log_config=None, lifespan="on")
        self._server = uvicorn.Server(config)
        await self._server.serve()

    async def aclose(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            await self._server_task
            self._server_task = None
        await super().aclose()

from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlencode

import httpx
import pytest

from domain.payment.entity import OrderState
from infrastructure.external.payments.ecpay import ECPayPayment
from infrastructure.external.payments.ecpay.constants import FAKE_ITEM_NAME
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)


def _trade_info(gateway: ECPayPayment, **overrides) -> dict:
    fields = {
        "MerchantID": gateway.options.merchant_id,
        "MerchantTradeNo": "ORDER1",
        "StoreID": "",
        "TradeNo": "2610171200000001",
        "TradeAmt": "500",
        "PaymentDate": "2026/10/17 12:00:00",
        "PaymentType": "Credit_CreditCard",
        "HandlingCharge": "13",
        "PaymentTypeChargeFee": "13",
        "TradeDate": "2026/10/17 11:50:00",
        "TradeStatus": "1",
        "ItemName": "A x5",
        "CustomField1": "",
    }
    fields.update(overrides)
    return gateway.codec.attach(fields)


def _gateway(ecpay_options, handler) -> ECPayPayment:
    return ECPayPayment(ecpay_options, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_query_paid_order(ecpay_options):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["form"] = dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))
        return httpx.Response(200, text=urlencode(_trade_info(gateway)))

    gateway = _gateway(ecpay_options, handler)
    order = await gateway.query("ORDER1")
    await gateway.aclose()

    assert seen["path"] == "/Cashier/QueryTradeInfo/V5"
    assert seen["form"]["MerchantTradeNo"] == "ORDER1"
    assert seen["form"]["PlatformID"] == ""
    assert gateway.codec.verify(seen["form"])

    assert order.id == "ORDER1"
    assert order.total_price == 500
    assert [item.name for item in order.items] == [FAKE_ITEM_NAME]
    assert order.state == OrderState.COMMITTED
    assert not order.commitable
    assert order.committed_at == datetime(2026, 10, 17, 4, 0, tzinfo=timezone.utc)
    assert order.created_at == datetime(2026, 10, 17, 3, 50, tzinfo=timezone.utc)
    assert order.payment_type == "Credit_CreditCard"
    assert order.platform_trade_number == "2610171200000001"
    assert order.remote_status == "committed"
    assert gateway.pending_orders.get("ORDER1") is None


@pytest.mark.asyncio
async def test_query_unpaid_order(ecpay_options):
    gateway = _gateway(
        ecpay_options,
        lambda request: httpx.Response(
            200, text=urlencode(_trade_info(gateway, PaymentDate="", TradeStatus="0", PaymentType=""))
        ),
    )
    order = await gateway.query("ORDER1")
    assert order.state == OrderState.PENDING
    assert order.commitable
    assert order.payment_type is None
    assert order.remote_status == "pending"


@pytest.mark.asyncio
async def test_query_rejects_tampered_response(ecpay_options):
    def handler(request: httpx.Request) -> httpx.Response:
        body = _trade_info(gateway)
        body["TradeAmt"] = "1"
        return httpx.Response(200, text=urlencode(body))

    gateway = _gateway(ecpay_options, handler)
    with pytest.raises(PaymentSignatureError):
        await gateway.query("ORDER1")


@pytest.mark.asyncio
async def test_query_http_error(ecpay_options):
    gateway = _gateway(ecpay_options, lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(PaymentProviderError) as exc_info:
        await gateway.query("ORDER1")
    assert exc_info.value.details["provider_code"] == "500"


@pytest.mark.asyncio
async def test_query_transport_error_is_recoverable(ecpay_options):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _gateway(ecpay_options, handler)
    with pytest.raises(PaymentRecoverableError):
        await gateway.query("ORDER1")


@pytest.mark.asyncio
async def test_query_summary_keeps_remote_failure(ecpay_options):
    from application.services.payment_service import PaymentService

    gateway = _gateway(
        ecpay_options,
        lambda request: httpx.Response(
            200, text=urlencode(_trade_info(gateway, PaymentDate="", TradeStatus="10200095", PaymentType=""))
        ),
    )
    summary = await PaymentService(gateway=gateway).query_order("ORDER1")
    await gateway.aclose()

    assert summary.state == "pending"
    assert summary.remote_status == "failed"

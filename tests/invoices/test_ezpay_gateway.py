import json
import re
from datetime import datetime
from urllib.parse import parse_qsl

import httpx
import pytest

from application.dtos.invoices import EZPayInvoiceIssueOptions
from core.settings import PaymentRetry
from domain.common.exceptions import DomainValidationException
from domain.invoice.entity import CustomsMark, InvoiceCarrier, InvoicePaymentItem, TaxType
from infrastructure.external.invoices.exceptions import InvoiceProviderError
from infrastructure.external.invoices.ezpay.gateway import EZPayInvoiceGateway, EZPayOptions


ITEM = InvoicePaymentItem(name="咖啡豆", unit_price=105, quantity=1)


def _field(request: httpx.Request, name: str) -> str:
    m = re.search(rf'name="{name}"\r\n\r\n([^\r]*)\r\n', request.content.decode("utf-8"))
    assert m, f"missing multipart field {name}"
    return m.group(1)


def _ok(result) -> httpx.Response:
    return httpx.Response(200, json={"Status": "SUCCESS", "Message": "", "Result": result})


class FakeEZPay:
    """Minimal stand-in for the EZPay endpoints."""

    def __init__(self, codec, *, love_code_exists: str = "Y", barcode_exists: str = "Y") -> None:
        self.codec = codec
        self.love_code_exists = love_code_exists
        self.barcode_exists = barcode_exists
        self.issued: list[dict] = []
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path == "/Api/invoice_issue":
            payload = dict(parse_qsl(self.codec.decrypt(_field(request, "PostData_")), keep_blank_values=True))
            self.issued.append(payload)
            return _ok(json.dumps({
                "CheckCode": "",
                "MerchantID": _field(request, "MerchantID_"),
                "MerchantOrderNo": payload["MerchantOrderNo"],
                "InvoiceNumber": "AB12345678",
                "TotalAmt": int(payload["TotalAmt"]),
                "InvoiceTransNo": "26101712000000001",
                "RandomNum": "1234",
                "CreateTime": "2026-10-17 12:00:00",
            }))
        post_data = _field(request, "PostData_")
        assert _field(request, "CheckValue") == self.codec.check_value(post_data)
        if request.url.path.endswith("/checkLoveCode"):
            return _ok(self.codec.encrypt({"IsExist": self.love_code_exists, "LoveCode": "919"}))
        if request.url.path.endswith("/checkBarCode"):
            return _ok(self.codec.encrypt({"IsExist": self.barcode_exists, "CellphoneBarcode": "/ABC+123"}))
        return httpx.Response(404)


def _gateway(**fake_kwargs):
    options = EZPayOptions(retry=PaymentRetry(max=0))
    holder = {}

    def handler(request):
        return holder["fake"](request)

    gateway = EZPayInvoiceGateway(options, transport=httpx.MockTransport(handler))
    holder["fake"] = FakeEZPay(gateway.codec, **fake_kwargs)
    return gateway, holder["fake"]


def _options(**kwargs) -> EZPayInvoiceIssueOptions:
    data = {"order_id": "INV_001", "items": [ITEM], "buyer_name": "王小明"}
    data.update(kwargs)
    return EZPayInvoiceIssueOptions(**data)


@pytest.mark.asyncio
async def test_issue_b2c_invoice():
    gateway, fake = _gateway()
    invoice = await gateway.issue(_options(buyer_email="buyer@shop.com.tw", remark="x" * 250))

    assert invoice.invoice_number == "AB12345678"
    assert invoice.random_code == "1234"
    assert invoice.issued_on == datetime(2026, 10, 17, 12, 0, 0)
    assert invoice.issued_amount == 105
    assert invoice.provider == "ezpay"

    payload = fake.issued[0]
    assert payload["Version"] == "1.5"
    assert payload["Status"] == "1"
    assert payload["Category"] == "B2C"
    assert payload["BuyerName"] == "王小明"
    assert payload["BuyerUBN"] == ""
    assert payload["CarrierType"] == ""
    assert payload["PrintFlag"] == "Y"
    assert payload["TaxType"] == "1"
    assert payload["TaxRate"] == "5"
    assert payload["Amt"] == "100"
    assert payload["TaxAmt"] == "5"
    assert payload["TotalAmt"] == "105"
    assert payload["ItemUnit"] == "式"
    assert payload["ItemPrice"] == "105"
    assert payload["ItemAmt"] == "105"
    assert payload["ItemTaxType"] == ""
    assert len(payload["Comment"]) == 200


@pytest.mark.asyncio
async def test_issue_b2b_invoice_prices_exclude_tax():
    gateway, fake = _gateway()
    await gateway.issue(_options(
        items=[InvoicePaymentItem(name="Server", unit_price=1050, quantity=2)],
        buyer_name="Acme Ltd.",
        vat_number="12345678",
        buyer_address="Taipei",
        carrier=InvoiceCarrier.print(),
    ))
    payload = fake.issued[0]
    assert payload["Category"] == "B2B"
    assert payload["BuyerUBN"] == "12345678"
    assert payload["BuyerAddress"] == "Taipei"
    assert payload["PrintFlag"] == "Y"
    assert payload["ItemPrice"] == "1000"
    assert payload["ItemAmt"] == "2000"
    assert payload["Amt"] == "2000"
    assert payload["TaxAmt"] == "100"
    assert payload["TotalAmt"] == "2100"


@pytest.mark.asyncio
async def test_issue_mixed_tax_invoice():
    gateway, fake = _gateway()
    await gateway.issue(_options(items=[
        ITEM,
        InvoicePaymentItem(name="Book", unit_price=300, quantity=1, tax_type=TaxType.TAX_FREE),
        InvoicePaymentItem(name="Export", unit_price=200, quantity=1, tax_type=TaxType.ZERO_TAX),
    ]))
    payload = fake.issued[0]
    assert payload["TaxType"] == "9"
    assert payload["AmtSales"] == "100"
    assert payload["AmtFree"] == "300"
    assert payload["AmtZero"] == "200"
    assert payload["ItemTaxType"] == "1|3|2"
    assert payload["TotalAmt"] == "605"


@pytest.mark.asyncio
async def test_issue_zero_tax_customs_clearance():
    gateway, fake = _gateway()
    await gateway.issue(_options(
        items=[InvoicePaymentItem(name="Export", unit_price=200, quantity=1, tax_type=TaxType.ZERO_TAX)],
        customs_mark=CustomsMark.YES,
    ))
    payload = fake.issued[0]
    assert payload["TaxType"] == "2"
    assert payload["TaxRate"] == "0"
    assert payload["CustomsClearance"] == "2"
    assert payload["Amt"] == "200"


@pytest.mark.asyncio
async def test_issue_with_love_code_and_mobile_carrier():
    gateway, fake = _gateway()
    await gateway.issue(_options(carrier=InvoiceCarrier.love_code("919")))
    assert fake.paths[0] == "/Api_inv_application/checkLoveCode"
    assert fake.issued[-1]["LoveCode"] == "919"
    assert fake.issued[-1]["PrintFlag"] == "N"

    await gateway.issue(_options(carrier=InvoiceCarrier.mobile(" /ABC+123 ")))
    assert "/Api_inv_application/checkBarCode" in fake.paths
    assert fake.issued[-1]["CarrierType"] == "0"
    assert fake.issued[-1]["CarrierNum"] == "/ABC+123"
    assert fake.issued[-1]["PrintFlag"] == "N"


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"order_id": "INV-001"}, "only allowed number, alphabet and underline"),
        ({"order_id": ""}, "length less than 20"),
        ({"order_id": "A" * 21}, "length less than 20"),
        ({"vat_number": "1234"}, "Invalid VAT number format"),
        ({"buyer_email": "not-an-email"}, "`buyer_email` is invalid format"),
        ({"vat_number": "12345678"}, "carrier should be PRINT"),
        ({"buyer_name": "名" * 31}, "maximum length is 30"),
        ({"carrier": InvoiceCarrier.platform("P001")}, "should provide buyer email"),
        ({"items": [InvoicePaymentItem(name="X", unit_price=100, quantity=1, tax_type=TaxType.SPECIAL)]}, "not support special tax"),
        (
            {
                "vat_number": "12345678",
                "carrier": InvoiceCarrier.print(),
                "items": [ITEM, InvoicePaymentItem(name="B", unit_price=100, quantity=1, tax_type=TaxType.TAX_FREE)],
            },
            "not support mixed tax",
        ),
        ({"carrier": InvoiceCarrier.moica("ab12345678901234")}, "invalid MOICA code"),
        ({"items": [InvoicePaymentItem(name="Free", unit_price=0, quantity=1)]}, "more than zero"),
    ],
)
@pytest.mark.asyncio
async def test_issue_validation(kwargs, message):
    gateway, fake = _gateway()
    with pytest.raises(DomainValidationException) as exc_info:
        await gateway.issue(_options(**kwargs))
    assert message in exc_info.value.message
    assert fake.issued == []


@pytest.mark.asyncio
async def test_issue_rejects_unknown_love_code():
    gateway, fake = _gateway(love_code_exists="N")
    with pytest.raises(DomainValidationException) as exc_info:
        await gateway.issue(_options(carrier=InvoiceCarrier.love_code("000")))
    assert exc_info.value.message == "Love code is invalid"
    assert fake.issued == []


@pytest.mark.asyncio
async def test_carrier_validation():
    gateway, _ = _gateway(barcode_exists="N")
    assert await gateway.is_love_code_valid("919") is True
    assert await gateway.is_mobile_barcode_valid("/ABC+123") is False


@pytest.mark.asyncio
async def test_provider_failure_raises_with_message():
    def handler(request):
        return httpx.Response(200, json={"Status": "KEY10004", "Message": "資料不齊全", "Result": ""})

    gateway = EZPayInvoiceGateway(EZPayOptions(), transport=httpx.MockTransport(handler))
    with pytest.raises(InvoiceProviderError) as exc_info:
        await gateway.issue(_options())
    assert exc_info.value.message == "資料不齊全"
    assert exc_info.value.details["provider_code"] == "KEY10004"

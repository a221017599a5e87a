"""
EZPay e-invoice gateway: issues B2C / B2B invoices and validates carriers.
"""
from __future__ import annotations

import json
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, field_validator

from application.dtos.invoices import EZPayInvoiceIssueOptions
from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentSettings, PaymentTimeouts, payment_settings
from domain.common.exceptions import DomainValidationException
from domain.invoice.entity import (
    CustomsMark,
    Invoice,
    InvoiceCarrierType,
    InvoicePaymentItem,
    TaxType,
    get_tax_type_from_items,
)
from infrastructure.external.invoices.exceptions import InvoiceProviderError
from infrastructure.external.invoices.ezpay.codec import EZPayCodec
from infrastructure.external.invoices.ezpay.constants import (
    CARRIER_TYPE_CODE,
    CHECK_BARCODE_ENDPOINT,
    CHECK_LOVE_CODE_ENDPOINT,
    CREATE_TIME_FORMAT,
    DEFAULT_ITEM_UNIT,
    ISSUE_ENDPOINT,
    ISSUE_STATUS_INSTANT,
    ISSUE_VERSION,
    STATUS_SUCCESS,
    TAX_TYPE_CODE,
    VALIDATION_VERSION,
)
from infrastructure.external.payments.base import BaseGatewayClient


logger = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)

_ORDER_ID_INVALID_CHAR = re.compile(r"[^0-9A-Za-z_]")
_VAT_NUMBER = re.compile(r"^\d{8}$")
_MOICA_CODE = re.compile(r"^[A-Z]{2}[0-9]{14}$")

_UNTAXED = (TaxType.TAX_FREE, TaxType.ZERO_TAX)


def _round(value: float) -> int:
    # Half-up, as EZPay computes amounts
    return math.floor(value + 0.5)


@dataclass
class EZPayInvoice(Invoice):
    provider: str = "ezpay"


class EZPayOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash_key: str = "yoRs5AfTfAWe9HI4DlEYKRorr9YvV3Kr"
    hash_iv: str = "CrJMQLwDF6zKOeaP"
    merchant_id: str = "34818970"
    base_url: str = "https://cinv.ezpay.com.tw"
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_settings(cls, settings: PaymentSettings = payment_settings) -> "EZPayOptions":
        return cls(**settings.ezpay.model_dump(), timeouts=settings.timeouts, retry=settings.retry)


class EZPayInvoiceGateway(BaseGatewayClient):
    provider = "ezpay"

    def __init__(self, options: Optional[EZPayOptions] = None, *, transport=None) -> None:
        self.options = options or EZPayOptions.from_settings()
        super().__init__(
            timeouts=self.options.timeouts.model_dump(),
            retry={"max": self.options.retry.max, "base": self.options.retry.base_backoff},
            transport=transport,
        )
        self.codec = EZPayCodec(self.options.hash_key, self.options.hash_iv)

    @staticmethod
    def _item_tax_rate(item: InvoicePaymentItem, special_tax_percentage: Optional[float]) -> float:
        if item.tax_type in _UNTAXED:
            return 1
        return special_tax_percentage / 100 + 1 if special_tax_percentage else 1.05

    async def _validate(self, options: EZPayInvoiceIssueOptions, tax_type: TaxType) -> None:
        carrier_type = options.carrier.type if options.carrier else None

        if _ORDER_ID_INVALID_CHAR.search(options.order_id):
            raise DomainValidationException(
                "`order_id` only allowed number, alphabet and underline", field="order_id"
            )

        if not options.order_id or len(options.order_id) > 20:
            raise DomainValidationException("`order_id` is required and length less than 20", field="order_id")

        if options.vat_number and not _VAT_NUMBER.match(options.vat_number):
            raise DomainValidationException("Invalid VAT number format", field="vat_number")

        if options.buyer_email:
            try:
                _email_adapter.validate_python(options.buyer_email)
            except ValidationError as exc:
                raise DomainValidationException("`buyer_email` is invalid format", field="buyer_email") from exc

        if options.vat_number and carrier_type != InvoiceCarrierType.PRINT:
            raise DomainValidationException("when `vat_number` provided, carrier should be PRINT", field="carrier")

        if not options.vat_number and len(options.buyer_name) > 30:
            raise DomainValidationException(
                "B2C invoice `buyer_name` maximum length is 30 chars", field="buyer_name"
            )

        if carrier_type == InvoiceCarrierType.PLATFORM and not options.buyer_email:
            raise DomainValidationException(
                "Platform carrier should provide buyer email to received notification", field="buyer_email"
            )

        if tax_type == TaxType.SPECIAL:
            raise DomainValidationException("EZPay not support special tax type", field="items")

        if tax_type == TaxType.MIXED and options.vat_number:
            raise DomainValidationException("B2B Invoice not support mixed tax invoice", field="items")

        if carrier_type == InvoiceCarrierType.LOVE_CODE and not await self.is_love_code_valid(options.carrier.code):
            raise DomainValidationException("Love code is invalid", field="carrier")

        if carrier_type == InvoiceCarrierType.MOBILE and not await self.is_mobile_barcode_valid(options.carrier.code):
            raise DomainValidationException("Mobile barcode is invalid", field="carrier")

        if carrier_type == InvoiceCarrierType.MOICA and not _MOICA_CODE.match(options.carrier.code):
            raise DomainValidationException("invalid MOICA code", field="carrier")

    def _build_issue_payload(self, options: EZPayInvoiceIssueOptions, tax_type: TaxType) -> dict[str, str]:
        items = options.items
        special = options.special_tax_percentage
        carrier = options.carrier
        carrier_type = carrier.type if carrier else None
        is_b2b = bool(options.vat_number)
        is_mixed = tax_type == TaxType.MIXED

        carrier_type_code = CARRIER_TYPE_CODE.get(carrier_type, "") if carrier_type else ""
        carrier_code = carrier.code.strip() if carrier_type in CARRIER_TYPE_CODE else ""

        tax_rate = 0 if tax_type in _UNTAXED else (special or 5)
        total_amount = sum(item.unit_price * item.quantity for item in items)
        amount_without_tax = _round(
            sum(item.unit_price * item.quantity / self._item_tax_rate(item, special) for item in items)
        )

        def item_price(item: InvoicePaymentItem) -> int:
            if not is_b2b:
                return item.unit_price
            return _round(item.unit_price / self._item_tax_rate(item, special))

        def item_amount(item: InvoicePaymentItem) -> int:
            if not is_b2b:
                return item.unit_price * item.quantity
            return _round(item.unit_price * item.quantity / self._item_tax_rate(item, special))

        def item_tax_code(item: InvoicePaymentItem) -> str:
            if item.tax_type == TaxType.TAX_FREE:
                return "3"
            if item.tax_type == TaxType.ZERO_TAX:
                return "2"
            return "1"

        def amount_of(tax: TaxType) -> str:
            amount = _round(sum(i.unit_price * i.quantity for i in items if i.tax_type == tax))
            return str(amount) if amount else ""

        if is_b2b:
            buyer_name = options.vat_number if len(options.buyer_name) > 60 else options.buyer_name
        else:
            buyer_name = options.buyer_name

        print_flag = is_b2b or (not carrier_type_code and carrier_type != InvoiceCarrierType.LOVE_CODE)

        return {
            "RespondType": "JSON",
            "Version": ISSUE_VERSION,
            "TimeStamp": str(int(time.time())),
            "TransNum": options.ezpay_trans_number or "",
            "MerchantOrderNo": options.order_id,
            "Status": ISSUE_STATUS_INSTANT,
            "CreateStatusTime": "",
            "Category": "B2B" if is_b2b else "B2C",
            "BuyerName": buyer_name,
            "BuyerUBN": options.vat_number or "",
            "BuyerAddress": (options.buyer_address or "") if is_b2b else "",
            "BuyerEmail": options.buyer_email or "",
            "CarrierType": carrier_type_code,
            "CarrierNum": carrier_code,
            "LoveCode": carrier.code if carrier_type == InvoiceCarrierType.LOVE_CODE else "",
            "PrintFlag": "Y" if print_flag else "N",
            "KioskPrintFlag": "",
            "TaxType": TAX_TYPE_CODE[tax_type],
            "TaxRate": f"{tax_rate:g}",
            "CustomsClearance": (
                ("2" if options.customs_mark == CustomsMark.YES else "1") if tax_type == TaxType.ZERO_TAX else ""
            ),
            "Amt": str(amount_without_tax),
            "AmtSales": (
                str(_round(sum(
                    i.unit_price * i.quantity / self._item_tax_rate(i, special)
                    for i in items
                    if i.tax_type not in _UNTAXED
                )))
                if is_mixed else ""
            ),
            "AmtZero": amount_of(TaxType.ZERO_TAX) if is_mixed else "",
            "AmtFree": amount_of(TaxType.TAX_FREE) if is_mixed else "",
            "TaxAmt": str(total_amount - amount_without_tax),
            "TotalAmt": str(total_amount),
            "ItemName": "|".join(item.name for item in items),
            "ItemCount": "|".join(str(item.quantity) for item in items),
            "ItemUnit": "|".join(item.unit or DEFAULT_ITEM_UNIT for item in items),
            "ItemPrice": "|".join(str(item_price(item)) for item in items),
            "ItemAmt": "|".join(str(item_amount(item)) for item in items),
            "ItemTaxType": "|".join(item_tax_code(item) for item in items) if is_mixed else "",
            "Comment": (options.remark or "")[:200],
        }

    async def _request(self, endpoint: str, fields: dict[str, str]) -> dict[str, Any]:
        resp = await self._post(
            f"{self.options.base_url}{endpoint}",
            files={key: (None, value) for key, value in fields.items()},
        )
        try:
            data = resp.json()
        except ValueError as exc:
            raise InvoiceProviderError("Malformed response", provider=self.provider, details={"endpoint": endpoint}) from exc

        if data.get("Status") != STATUS_SUCCESS:
            raise InvoiceProviderError(
                data.get("Message") or "Unknown error",
                provider=self.provider,
                provider_code=data.get("Status"),
                details={"endpoint": endpoint},
            )
        return data

    async def issue(self, options: EZPayInvoiceIssueOptions) -> EZPayInvoice:
        tax_type = get_tax_type_from_items(options.items)
        await self._validate(options, tax_type)

        if sum(item.unit_price * item.quantity for item in options.items) <= 0:
            raise DomainValidationException("invoice amount should more than zero", field="items")

        post_data = self.codec.encrypt(self._build_issue_payload(options, tax_type))
        self._log("ezpay_invoice_issue_request", order_id=options.order_id, tax_type=tax_type.value)

        data = await self._request(
            ISSUE_ENDPOINT,
            {"MerchantID_": self.options.merchant_id, "PostData_": post_data},
        )
        result = json.loads(data["Result"]) if isinstance(data.get("Result"), str) else data.get("Result") or {}

        invoice = EZPayInvoice(
            invoice_number=result["InvoiceNumber"],
            random_code=result["RandomNum"],
            issued_on=datetime.strptime(result["CreateTime"], CREATE_TIME_FORMAT),
            items=list(options.items),
            order_id=options.order_id,
        )
        self._log("ezpay_invoice_issued", order_id=options.order_id, invoice_number=invoice.invoice_number)
        return invoice

    async def _check(self, endpoint: str, payload: dict[str, str]) -> dict[str, str]:
        post_data = self.codec.encrypt(payload)
        data = await self._request(
            endpoint,
            {
                "MerchantID_": self.options.merchant_id,
                "Version": VALIDATION_VERSION,
                "RespondType": "JSON",
                "PostData_": post_data,
                "CheckValue": self.codec.check_value(post_data),
            },
        )
        result: dict[str, str] = {}
        for pair in self.codec.decrypt(data["Result"]).split("&"):
            key, _, value = pair.partition("=")
            if key:
                result[key] = unquote(value.strip())
        return result

    async def is_mobile_barcode_valid(self, code: str) -> bool:
        result = await self._check(
            CHECK_BARCODE_ENDPOINT,
            {"TimeStamp": str(int(time.time())), "CellphoneBarcode": code},
        )
        return result.get("IsExist") == "Y"

    async def is_love_code_valid(self, code: str) -> bool:
        result = await self._check(
            CHECK_LOVE_CODE_ENDPOINT,
            {"TimeStamp": str(int(time.time())), "LoveCode": code},
        )
        return result.get("IsExist") == "Y"

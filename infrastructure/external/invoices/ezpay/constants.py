"""
EZPay e-invoice API constants (API v1.5).
"""
from __future__ import annotations

from enum import Enum

from domain.invoice.entity import InvoiceCarrierType, TaxType


class EZPayBaseUrl(str, Enum):
    DEVELOPMENT = "https://cinv.ezpay.com.tw"
    PRODUCTION = "https://inv.ezpay.com.tw"


ISSUE_ENDPOINT = "/Api/invoice_issue"
CHECK_BARCODE_ENDPOINT = "/Api_inv_application/checkBarCode"
CHECK_LOVE_CODE_ENDPOINT = "/Api_inv_application/checkLoveCode"

ISSUE_VERSION = "1.5"
VALIDATION_VERSION = "1.0"

STATUS_SUCCESS = "SUCCESS"
ISSUE_STATUS_INSTANT = "1"

CREATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_ITEM_UNIT = "式"

TAX_TYPE_CODE = {
    TaxType.TAXED: "1",
    TaxType.ZERO_TAX: "2",
    TaxType.TAX_FREE: "3",
    TaxType.MIXED: "9",
}

CARRIER_TYPE_CODE = {
    InvoiceCarrierType.MOBILE: "0",
    InvoiceCarrierType.MOICA: "1",
    InvoiceCarrierType.PLATFORM: "2",
}

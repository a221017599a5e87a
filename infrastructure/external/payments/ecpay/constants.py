"""
ECPay AIO (all-in-one) checkout constants.
"""
from __future__ import annotations

from enum import Enum

from domain.payment.entity import VIRTUAL_ACCOUNT_WAITING, Channel, PaymentPeriodType


DATETIME_FORMAT = "%Y/%m/%d %H:%M:%S"

CHECKOUT_ENDPOINT = "/Cashier/AioCheckOut/V5"
QUERY_ENDPOINT = "/Cashier/QueryTradeInfo/V5"

# Placeholder item name for orders rebuilt from a remote query
FAKE_ITEM_NAME = "__ECPAY_QUERIED_ITEM__"

DEFAULT_VIRTUAL_ACCOUNT_EXPIRE_DAYS = 3


class Language(str, Enum):
    TRADITIONAL_CHINESE = ""
    ENGLISH = "ENG"
    KOREAN = "KOR"
    JAPANESE = "JPN"
    SIMPLIFIED_CHINESE = "CHI"


ECPAY_CHANNEL = {
    Channel.CREDIT_CARD: "Credit",
    Channel.WEB_ATM: "WebATM",
    Channel.VIRTUAL_ACCOUNT: "ATM",
    Channel.CVS_KIOSK: "CVS",
    Channel.CVS_BARCODE: "BARCODE",
}

ECPAY_PERIOD_TYPE = {
    PaymentPeriodType.DAY: "D",
    PaymentPeriodType.MONTH: "M",
    PaymentPeriodType.YEAR: "Y",
}


class ECPayCallbackPaymentType(str, Enum):
    CREDIT_CARD = "Credit_CreditCard"
    ATM_TAISHIN = "ATM_TAISHIN"
    ATM_ESUN = "ATM_ESUN"
    ATM_BOT = "ATM_BOT"
    ATM_FUBON = "ATM_FUBON"
    ATM_CHINATRUST = "ATM_CHINATRUST"
    ATM_FIRST = "ATM_FIRST"
    ATM_LAND = "ATM_LAND"
    ATM_CATHAY = "ATM_CATHAY"
    ATM_TACHONG = "ATM_TACHONG"
    ATM_PANHSIN = "ATM_PANHSIN"
    VIRTUAL_ACCOUNT_WAITING = VIRTUAL_ACCOUNT_WAITING


VIRTUAL_ACCOUNT_PAYMENT_TYPES = frozenset({
    ECPayCallbackPaymentType.ATM_TAISHIN.value,
    ECPayCallbackPaymentType.ATM_ESUN.value,
    ECPayCallbackPaymentType.ATM_BOT.value,
    ECPayCallbackPaymentType.ATM_FUBON.value,
    ECPayCallbackPaymentType.ATM_CHINATRUST.value,
    ECPayCallbackPaymentType.ATM_FIRST.value,
    ECPayCallbackPaymentType.ATM_LAND.value,
    ECPayCallbackPaymentType.ATM_CATHAY.value,
    ECPayCallbackPaymentType.ATM_TACHONG.value,
    ECPayCallbackPaymentType.ATM_PANHSIN.value,
})

# RtnCode values
RTN_CODE_PAID = 1
RTN_CODE_VIRTUAL_ACCOUNT_ISSUED = 2

NUMERIC_CALLBACK_KEYS = frozenset({
    "TradeAmt",
    "RtnCode",
    "PaymentTypeChargeFee",
    "SimulatePaid",
    "gwsr",
    "amount",
    "stage",
    "stast",
    "staed",
    "eci",
    "red_dan",
    "red_de_amt",
    "red_ok_amt",
    "red_yet",
    "Frequency",
    "ExecTimes",
    "PeriodAmount",
    "TotalSuccessTimes",
    "TotalSuccessAmount",
})

# Acknowledgement bodies expected by ECPay
ACK_OK = "1|OK"
ACK_CHECKSUM_INVALID = "0|CheckSumInvalid"
ACK_ORDER_NOT_FOUND = "0|OrderNotFound"

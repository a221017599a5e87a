"""ECPay AIO checkout adapter."""
from infrastructure.external.payments.ecpay.codec import CheckMacCodec
from infrastructure.external.payments.ecpay.constants import ECPayCallbackPaymentType, Language
from infrastructure.external.payments.ecpay.gateway import ECPayOptions, ECPayPayment
from infrastructure.external.payments.ecpay.order import ECPayOrder

__all__ = [
    "CheckMacCodec",
    "ECPayCallbackPaymentType",
    "ECPayOptions",
    "ECPayOrder",
    "ECPayPayment",
    "Language",
]

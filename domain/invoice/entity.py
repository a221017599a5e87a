"""
电子发票领域实体与值对象
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Sequence


class TaxType(str, Enum):
    """课税别"""
    TAXED = "taxed"
    TAX_FREE = "tax_free"
    ZERO_TAX = "zero_tax"
    SPECIAL = "special"
    MIXED = "mixed"


class InvoiceCarrierType(str, Enum):
    """载具类型"""
    PRINT = "print"
    LOVE_CODE = "love_code"
    MOBILE = "mobile"
    MOICA = "moica"
    PLATFORM = "platform"


class CustomsMark(str, Enum):
    """零税率通关方式"""
    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class InvoiceCarrier:
    type: InvoiceCarrierType
    code: str = ""

    @classmethod
    def print(cls) -> "InvoiceCarrier":
        return cls(type=InvoiceCarrierType.PRINT)

    @classmethod
    def love_code(cls, code: str) -> "InvoiceCarrier":
        return cls(type=InvoiceCarrierType.LOVE_CODE, code=code)

    @classmethod
    def mobile(cls, code: str) -> "InvoiceCarrier":
        return cls(type=InvoiceCarrierType.MOBILE, code=code)

    @classmethod
    def moica(cls, code: str) -> "InvoiceCarrier":
        return cls(type=InvoiceCarrierType.MOICA, code=code)

    @classmethod
    def platform(cls, code: str) -> "InvoiceCarrier":
        return cls(type=InvoiceCarrierType.PLATFORM, code=code)


@dataclass(frozen=True)
class InvoicePaymentItem:
    name: str
    unit_price: int
    quantity: int
    unit: Optional[str] = None
    tax_type: Optional[TaxType] = None
    remark: Optional[str] = None


def get_tax_type_from_items(items: Iterable[InvoicePaymentItem]) -> TaxType:
    """根据品项课税别推导整张发票的课税别（未标注视为应税）"""
    types = {item.tax_type or TaxType.TAXED for item in items}
    if not types:
        return TaxType.TAXED
    if TaxType.SPECIAL in types:
        return TaxType.SPECIAL
    if len(types) == 1:
        return types.pop()
    return TaxType.MIXED


@dataclass
class Invoice:
    """已开立发票"""
    invoice_number: str
    random_code: str
    issued_on: datetime
    items: Sequence[InvoicePaymentItem] = field(default_factory=list)
    order_id: Optional[str] = None
    provider: str = "base"

    @property
    def issued_amount(self) -> int:
        return sum(item.unit_price * item.quantity for item in self.items)

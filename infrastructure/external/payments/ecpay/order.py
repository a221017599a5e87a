"""
ECPay order: the domain order plus the signed AIO form that hands the buyer
over to ECPay's checkout page.
"""
from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING, Any, Mapping, Optional

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import PaymentOrder

if TYPE_CHECKING:
    from infrastructure.external.payments.ecpay.gateway import ECPayPayment


class ECPayOrder(PaymentOrder):
    provider = "ecpay"

    def __init__(
        self,
        *,
        gateway: "ECPayPayment",
        form: Optional[Mapping[str, str]] = None,
        remote_status: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(publisher=gateway.publish, **kwargs)
        self._gateway = gateway
        self._form = dict(form) if form is not None else None
        self.remote_status = remote_status

    @property
    def form(self) -> Optional[dict[str, str]]:
        return dict(self._form) if self._form is not None else None

    @property
    def checkout_url(self) -> str:
        return self._gateway.get_checkout_url(self)

    @property
    def form_html(self) -> str:
        if self._form is None:
            raise DomainValidationException("Order has no checkout form", field="form")

        inputs = "".join(
            f'<input type="hidden" name="{escape(key)}" value="{escape(value)}" />'
            for key, value in self._form.items()
        )

        return (
            "<!DOCTYPE html>"
            '<html><head><meta charset="utf-8"><title>Payment Submit Form</title></head>'
            f'<body><form action="{escape(self._gateway.checkout_action_url)}" method="POST">{inputs}</form>'
            "<script>document.forms[0].submit();</script></body></html>"
        )

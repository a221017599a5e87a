"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Defaults point at the ECPay / EZPay staging merchants so the adapters work
out of the box against the sandboxes.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class ECPaySettings(BaseModel):
    language: str = ""  # empty means Traditional Chinese on ECPay checkout
    base_url: str = "https://payment-stage.ecpay.com.tw"
    merchant_id: str = "2000132"
    merchant_check_code: str = "59997889"
    hash_key: str = "5294y06JbISpM5x9"
    hash_iv: str = "v77hoKGq4kWxNNIS"
    server_host: str = "http://localhost:3000"
    callback_path: str = "/payments/ecpay/callback"
    checkout_path: str = "/payments/ecpay/checkout"
    ttl: int = 10 * 60  # seconds


class EZPaySettings(BaseModel):
    hash_key: str = "yoRs5AfTfAWe9HI4DlEYKRorr9YvV3Kr"
    hash_iv: str = "CrJMQLwDF6zKOeaP"
    merchant_id: str = "34818970"
    base_url: str = "https://cinv.ezpay.com.tw"


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="ecpay", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    ecpay: ECPaySettings = Field(default_factory=ECPaySettings)
    ezpay: EZPaySettings = Field(default_factory=EZPaySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()

"""Pytest bootstrap configuration.

Pins the gateway settings to the sandbox merchants before application
modules read them, and provides shared gateway fixtures.
"""
import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ECPAY__SERVER_HOST", "http://localhost:3000")

import pytest

from core.settings import PaymentRetry
from infrastructure.external.payments.ecpay import ECPayOptions, ECPayPayment


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ecpay_options() -> ECPayOptions:
    return ECPayOptions(server_host="http://localhost:3000", retry=PaymentRetry(max=0))


@pytest.fixture
def committed() -> list:
    return []


@pytest.fixture
def ecpay(ecpay_options, committed) -> ECPayPayment:
    return ECPayPayment(ecpay_options, on_commit=committed.append)

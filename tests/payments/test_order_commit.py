import threading
from datetime import datetime, timezone

import pytest

from domain.common.exceptions import (
    DomainValidationException,
    OrderAlreadyCommittedException,
    OrderStateConflictException,
)
from domain.payment.entity import (
    VIRTUAL_ACCOUNT_WAITING,
    CreditCardCommitMessage,
    OrderItem,
    OrderState,
    PaymentOrder,
    VirtualAccountCommitMessage,
    VirtualAccountInfo,
)
from domain.payment.events import OrderCommitted


PAID_AT = datetime(2026, 10, 17, 4, 0, tzinfo=timezone.utc)


def _order(events: list, **kwargs) -> PaymentOrder:
    return PaymentOrder(
        id="ORDER1",
        items=[OrderItem(name="A", unit_price=100, quantity=2)],
        publisher=events.append,
        **kwargs,
    )


def _message(cls=CreditCardCommitMessage, committed_at=PAID_AT, payment_type="Credit_CreditCard"):
    return cls(
        id="ORDER1",
        total_price=200,
        committed_at=committed_at,
        merchant_id="2000132",
        trade_number="2310171200000001",
        trade_date=PAID_AT,
        payment_type=payment_type,
    )


def test_new_order_is_pending():
    order = _order([])
    assert order.total_price == 200
    assert order.commitable
    assert order.state == OrderState.PENDING
    assert order.committed_at is None


def test_order_requires_items():
    with pytest.raises(DomainValidationException):
        PaymentOrder(id="ORDER1", items=[])


def test_commit_once_then_reject():
    events: list = []
    order = _order(events)
    order.commit(_message(), additional_info="auth")

    assert order.state == OrderState.COMMITTED
    assert not order.commitable
    assert order.committed_at == PAID_AT
    assert order.platform_trade_number == "2310171200000001"
    assert len(events) == 1
    assert isinstance(events[0], OrderCommitted)
    assert events[0].order is order

    with pytest.raises(OrderAlreadyCommittedException):
        order.commit(_message(committed_at=datetime(2026, 10, 18, tzinfo=timezone.utc)), additional_info="other")

    assert order.committed_at == PAID_AT
    assert order.additional_info == "auth"
    assert len(events) == 1


def test_order_restored_as_committed_is_not_commitable():
    order = _order([], committed_at=PAID_AT)
    assert not order.commitable
    with pytest.raises(OrderAlreadyCommittedException):
        order.commit(_message())


def test_virtual_account_two_phase():
    events: list = []
    order = _order(events)
    info = VirtualAccountInfo(bank_code="812", account="9103522175887271")

    order.commit(_message(VirtualAccountCommitMessage, committed_at=None, payment_type="ATM_TAISHIN"), info)
    assert order.payment_type == VIRTUAL_ACCOUNT_WAITING
    assert order.commitable
    assert order.additional_info == info
    assert events == []

    order.commit(_message(VirtualAccountCommitMessage, payment_type="ATM_TAISHIN"), info)
    assert order.payment_type == "ATM_TAISHIN"
    assert not order.commitable
    assert len(events) == 1

    with pytest.raises(OrderAlreadyCommittedException):
        order.commit(_message(VirtualAccountCommitMessage, payment_type="ATM_TAISHIN"), info)


def test_only_virtual_account_may_omit_committed_at():
    order = _order([])
    with pytest.raises(DomainValidationException):
        order.commit(_message(committed_at=None))
    assert order.payment_type is None


def test_concrete_payment_type_cannot_go_back_to_waiting():
    order = _order([], payment_type="Credit_CreditCard")
    with pytest.raises(OrderStateConflictException):
        order.commit(_message(VirtualAccountCommitMessage, committed_at=None, payment_type="ATM_BOT"))
    assert order.payment_type == "Credit_CreditCard"
    assert order.commitable


def test_concurrent_commits_publish_once():
    workers = 16
    events: list = []
    order = _order(events)
    barrier = threading.Barrier(workers)
    succeeded: list = []
    rejected: list = []

    def deliver(n: int) -> None:
        barrier.wait()
        try:
            order.commit(_message(), additional_info=n)
        except OrderAlreadyCommittedException:
            rejected.append(n)
        else:
            succeeded.append(n)

    threads = [threading.Thread(target=deliver, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(succeeded) == 1
    assert len(rejected) == workers - 1
    assert order.additional_info == succeeded[0]
    assert len(events) == 1
    assert isinstance(events[0], OrderCommitted)

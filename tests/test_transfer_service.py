from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import build_account
from apilabs.services.errors import InsufficientFunds, NotFound, PersistenceFailure, ValidationFailed
from apilabs.services.transfers import TransferService


@pytest.fixture
def owner():
    return uuid4()


@pytest.fixture
def other():
    return uuid4()


async def _seed(uow, *accounts):
    for account in accounts:
        await uow.accounts.add(account)
    return accounts


async def test_transfer_moves_balance_and_posts_two_legs(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "500.00"), build_account(other, "100.00"))
    service = TransferService(memory_uow, publisher)

    result = await service.transfer(owner, a.account_id, b.account_id, Decimal("150.00"))

    assert a.balance == Decimal("350.00")
    assert b.balance == Decimal("250.00")
    assert memory_uow.transactions.rows == [result.debit, result.credit]

    debit, credit = result.debit, result.credit
    assert debit.amount == credit.amount == Decimal("150.00")
    assert debit.account_id == a.account_id and debit.counterpart_account_id == b.account_id
    assert credit.account_id == b.account_id and credit.counterpart_account_id == a.account_id
    assert debit.balance_after == a.balance
    assert credit.balance_after == b.balance
    assert debit.transaction_type == credit.transaction_type == "transfer"
    assert (debit.entry_type, credit.entry_type) == ("debit", "credit")
    assert debit.status == credit.status == "completed"
    assert debit.reference_number != credit.reference_number


async def test_transfer_default_and_custom_descriptions(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "100.00"), build_account(other, "0.00"))
    service = TransferService(memory_uow, publisher)

    result = await service.transfer(owner, a.account_id, b.account_id, "10")
    assert result.debit.description == f"Transfer to {b.account_number}"
    assert result.credit.description == f"Transfer from {a.account_number}"

    result = await service.transfer(owner, a.account_id, b.account_id, "10", "rent")
    assert result.debit.description == result.credit.description == "rent"


async def test_insufficient_funds_leaves_everything_untouched(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "50.00"), build_account(other, "100.00"))
    service = TransferService(memory_uow, publisher)

    with pytest.raises(InsufficientFunds):
        await service.transfer(owner, a.account_id, b.account_id, Decimal("50.01"))

    assert a.balance == Decimal("50.00")
    assert b.balance == Decimal("100.00")
    assert memory_uow.transactions.rows == []
    assert publisher.events == []


async def test_transfer_of_entire_balance_empties_source(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "75.25"), build_account(other, "0.00"))
    service = TransferService(memory_uow, publisher)

    await service.transfer(owner, a.account_id, b.account_id, Decimal("75.25"))

    assert a.balance == Decimal("0.00")
    assert b.balance == Decimal("75.25")


async def test_identical_requests_post_twice(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "500.00"), build_account(other, "100.00"))
    service = TransferService(memory_uow, publisher)

    first = await service.transfer(owner, a.account_id, b.account_id, Decimal("100.00"), "same")
    second = await service.transfer(owner, a.account_id, b.account_id, Decimal("100.00"), "same")

    assert len(memory_uow.transactions.rows) == 4
    assert first.debit.transaction_id != second.debit.transaction_id
    assert a.balance == Decimal("300.00")
    assert b.balance == Decimal("300.00")


async def test_source_must_belong_to_actor(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(other, "500.00"), build_account(owner, "0.00"))
    service = TransferService(memory_uow, publisher)

    with pytest.raises(NotFound, match="Source account not found"):
        await service.transfer(owner, a.account_id, b.account_id, Decimal("1.00"))
    assert a.balance == Decimal("500.00")


async def test_missing_destination(memory_uow, publisher, owner):
    (a,) = await _seed(memory_uow, build_account(owner, "500.00"))
    service = TransferService(memory_uow, publisher)

    with pytest.raises(NotFound, match="Destination account not found"):
        await service.transfer(owner, a.account_id, uuid4(), Decimal("1.00"))


async def test_missing_source_reported_before_missing_destination(memory_uow, publisher, owner):
    service = TransferService(memory_uow, publisher)

    with pytest.raises(NotFound, match="Source"):
        await service.transfer(owner, uuid4(), uuid4(), Decimal("1.00"))


async def test_destination_may_belong_to_actor(memory_uow, publisher, owner):
    a, b = await _seed(memory_uow, build_account(owner, "20.00"), build_account(owner, "0.00"))
    service = TransferService(memory_uow, publisher)

    await service.transfer(owner, a.account_id, b.account_id, Decimal("5.00"))
    assert b.balance == Decimal("5.00")


@pytest.mark.parametrize(
    "source_kwargs, destination_kwargs",
    [
        ({"status": "frozen"}, {}),
        ({}, {"status": "closed"}),
        ({"currency": "USD"}, {"currency": "EUR"}),
    ],
)
async def test_rejected_accounts(memory_uow, publisher, owner, other, source_kwargs, destination_kwargs):
    a, b = await _seed(
        memory_uow, build_account(owner, "100.00", **source_kwargs), build_account(other, "0.00", **destination_kwargs)
    )
    service = TransferService(memory_uow, publisher)

    with pytest.raises(ValidationFailed):
        await service.transfer(owner, a.account_id, b.account_id, Decimal("10.00"))
    assert memory_uow.transactions.rows == []


async def test_same_account_transfer_rejected(memory_uow, publisher, owner):
    (a,) = await _seed(memory_uow, build_account(owner, "100.00"))
    service = TransferService(memory_uow, publisher)

    with pytest.raises(ValidationFailed):
        await service.transfer(owner, a.account_id, a.account_id, Decimal("10.00"))
    assert a.balance == Decimal("100.00")


@pytest.mark.parametrize("amount", ["0", "-5.00"])
async def test_non_positive_amount_rejected(memory_uow, publisher, owner, other, amount):
    a, b = await _seed(memory_uow, build_account(owner, "100.00"), build_account(other, "0.00"))
    service = TransferService(memory_uow, publisher)

    with pytest.raises(ValidationFailed):
        await service.transfer(owner, a.account_id, b.account_id, amount)


async def test_storage_failure_mid_transfer_rolls_back_both_legs(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "500.00"), build_account(other, "100.00"))
    memory_uow.transactions.fail_on_add = 2
    service = TransferService(memory_uow, publisher)

    with pytest.raises(PersistenceFailure):
        await service.transfer(owner, a.account_id, b.account_id, Decimal("150.00"))

    assert memory_uow.transactions.rows == []
    assert a.balance == Decimal("500.00")
    assert b.balance == Decimal("100.00")
    assert memory_uow.rollbacks == 1
    assert publisher.events == []


async def test_subscribers_notified_after_commit(memory_uow, publisher, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "500.00"), build_account(other, "100.00"))
    service = TransferService(memory_uow, publisher)

    result = await service.transfer(owner, a.account_id, b.account_id, Decimal("150.00"))

    assert [(topic, payload["event"]) for topic, payload in publisher.events] == [
        (f"user_{owner}", "transfer_completed"),
        (f"user_{other}", "transfer_received"),
    ]
    assert publisher.events[0][1]["transaction"]["transaction_id"] == str(result.debit.transaction_id)
    assert publisher.events[1][1]["transaction"]["transaction_id"] == str(result.credit.transaction_id)


class ExplodingPublisher:
    def publish(self, topic, payload):
        raise RuntimeError("broker down")


async def test_failed_notification_does_not_undo_transfer(memory_uow, owner, other):
    a, b = await _seed(memory_uow, build_account(owner, "500.00"), build_account(other, "100.00"))
    service = TransferService(memory_uow, ExplodingPublisher())

    result = await service.transfer(owner, a.account_id, b.account_id, Decimal("150.00"))

    assert result.debit in memory_uow.transactions.rows
    assert a.balance == Decimal("350.00")
    assert b.balance == Decimal("250.00")

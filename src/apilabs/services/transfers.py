"""
Ledger transfer service.

A transfer is two ledger entries (a debit leg on the source account and a
credit leg on the destination) plus the two balance updates, all written
inside one unit-of-work transaction. Subscribers are notified only after
the commit succeeds.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from apilabs.db.models import Account, Transaction, utcnow
from apilabs.db.repositories import UnitOfWork
from apilabs.db.serializers import serialize_tx
from apilabs.logging_config import get_logger
from apilabs.services.errors import InsufficientFunds, NotFound, ValidationFailed
from apilabs.services.money import ZERO, generate_reference_number, to_money
from apilabs.services.notifications import NotificationPublisher, user_topic

logger = get_logger("apilabs.services.transfers")


@dataclass
class TransferResult:
    debit: Transaction
    credit: Transaction


def _build_leg(
    account: Account,
    counterpart: Account,
    entry_type: str,
    amount: Decimal,
    balance_after: Decimal,
    description: str,
) -> Transaction:
    now = utcnow()
    return Transaction(
        transaction_id=uuid4(),
        account_id=account.account_id,
        counterpart_account_id=counterpart.account_id,
        transaction_type="transfer",
        entry_type=entry_type,
        amount=amount,
        currency=account.currency,
        description=description,
        reference_number=generate_reference_number(),
        status="completed",
        balance_after=balance_after,
        created_at=now,
        updated_at=now,
    )


class TransferService:
    def __init__(self, uow: UnitOfWork, publisher: NotificationPublisher):
        self.uow = uow
        self.publisher = publisher

    async def transfer(
        self,
        actor_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount,
        description: Optional[str] = None,
    ) -> TransferResult:
        """
        Move ``amount`` from an account owned by ``actor_id`` to any other account.

        Raises NotFound when the source is missing or not owned, or the
        destination is missing; ValidationFailed for a same-account, inactive
        or cross-currency request; InsufficientFunds when the source balance
        is below ``amount``. No entry is written and no balance moves unless
        every check passes.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationFailed("Amount must be greater than 0")

        async with self.uow.transaction():
            source, destination = await self.uow.accounts.lock_pair(from_account_id, to_account_id)
            if source is None or source.user_id != actor_id:
                raise NotFound("Source account not found")
            if destination is None:
                raise NotFound("Destination account not found")
            if source.account_id == destination.account_id:
                raise ValidationFailed("Source and destination accounts must be different")
            if source.status != "active" or destination.status != "active":
                raise ValidationFailed("Both accounts must be active")
            if source.currency != destination.currency:
                raise ValidationFailed("Currency mismatch between accounts")

            source_balance = to_money(source.balance)
            destination_balance = to_money(destination.balance)
            if source_balance < amount:
                logger.warning(
                    "Transfer rejected - insufficient funds from=%s balance=%s amount=%s",
                    source.account_id,
                    source_balance,
                    amount,
                )
                raise InsufficientFunds("Insufficient balance")

            new_source_balance = source_balance - amount
            new_destination_balance = destination_balance + amount

            debit = _build_leg(
                source,
                destination,
                "debit",
                amount,
                new_source_balance,
                description or f"Transfer to {destination.account_number}",
            )
            credit = _build_leg(
                destination,
                source,
                "credit",
                amount,
                new_destination_balance,
                description or f"Transfer from {source.account_number}",
            )
            await self.uow.transactions.add(debit)
            await self.uow.transactions.add(credit)

            source.balance = new_source_balance
            destination.balance = new_destination_balance
            await self.uow.accounts.save(source)
            await self.uow.accounts.save(destination)

        logger.info(
            "Transfer posted from=%s to=%s amount=%s debit_ref=%s credit_ref=%s",
            source.account_id,
            destination.account_id,
            amount,
            debit.reference_number,
            credit.reference_number,
        )
        self._notify(user_topic(actor_id), "transfer_completed", debit)
        self._notify(user_topic(destination.user_id), "transfer_received", credit)
        return TransferResult(debit=debit, credit=credit)

    async def transfer_status(self, actor_id: UUID, transaction_id: UUID) -> Transaction:
        entry = await self.uow.transactions.get_for_user(transaction_id, actor_id)
        if entry is None:
            raise NotFound("Transfer not found")
        return entry

    def _notify(self, topic: str, event: str, entry: Transaction) -> None:
        try:
            self.publisher.publish(topic, {"event": event, "transaction": serialize_tx(entry)})
        except Exception as e:
            # already committed
            logger.exception("Failed to publish %s to %s: %s", event, topic, e)

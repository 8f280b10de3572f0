"""
Account lifecycle and single-account ledger postings.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from apilabs.db.models import Account, Transaction, utcnow
from apilabs.db.repositories import UnitOfWork
from apilabs.db.serializers import serialize_tx
from apilabs.logging_config import get_logger
from apilabs.services.errors import AccountInUse, InsufficientFunds, NotFound, ValidationFailed
from apilabs.services.money import ZERO, generate_account_number, generate_reference_number, to_money
from apilabs.services.notifications import NotificationPublisher, account_topic

logger = get_logger("apilabs.services.accounts")

ACCOUNT_TYPES = ("savings", "checking", "credit")
ACCOUNT_STATUSES = ("active", "frozen", "closed")
CURRENCIES = ("USD", "EUR", "GBP", "INR")
POSTING_TYPES = ("debit", "credit")

STATEMENT_LIMIT = 50


class AccountService:
    def __init__(self, uow: UnitOfWork, publisher: NotificationPublisher):
        self.uow = uow
        self.publisher = publisher

    async def open_account(self, actor_id: UUID, account_type: str, currency: str = "USD", balance=ZERO) -> Account:
        if account_type not in ACCOUNT_TYPES:
            raise ValidationFailed("Invalid account type")
        if currency not in CURRENCIES:
            raise ValidationFailed("Invalid currency")
        opening = to_money(balance)
        if opening < ZERO:
            raise ValidationFailed("Balance must be non-negative")

        now = utcnow()
        account = Account(
            account_id=uuid4(),
            user_id=actor_id,
            account_number=generate_account_number(account_type),
            account_type=account_type,
            balance=opening,
            currency=currency,
            status="active",
            overdraft_limit=ZERO,
            created_at=now,
            updated_at=now,
        )
        async with self.uow.transaction():
            await self.uow.accounts.add(account)
        logger.info("Opened account %s (%s) for user=%s", account.account_number, account_type, actor_id)
        return account

    async def list_accounts(self, actor_id: UUID) -> List[Account]:
        return await self.uow.accounts.list_for_user(actor_id)

    async def get_account(self, actor_id: UUID, account_id: UUID) -> Account:
        account = await self.uow.accounts.get_owned(account_id, actor_id)
        if account is None:
            raise NotFound("Account not found")
        return account

    async def update_account(self, actor_id: UUID, account_id: UUID, status: Optional[str]) -> Account:
        if status is not None and status not in ACCOUNT_STATUSES:
            raise ValidationFailed("Invalid account status")
        async with self.uow.transaction():
            account = await self.uow.accounts.get_owned(account_id, actor_id, for_update=True)
            if account is None:
                raise NotFound("Account not found")
            if status is not None:
                account.status = status
                account.updated_at = utcnow()
                await self.uow.accounts.save(account)
        return account

    async def delete_account(self, actor_id: UUID, account_id: UUID) -> None:
        async with self.uow.transaction():
            account = await self.uow.accounts.get_owned(account_id, actor_id, for_update=True)
            if account is None:
                raise NotFound("Account not found")
            if await self.uow.transactions.references_account(account_id):
                raise AccountInUse("Account has ledger entries and cannot be deleted")
            await self.uow.accounts.delete(account)
        logger.info("Deleted account %s for user=%s", account_id, actor_id)

    async def post_entry(
        self,
        actor_id: UUID,
        account_id: UUID,
        transaction_type: str,
        amount,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Post a deposit (credit) or withdrawal (debit) against one owned account.
        """
        if transaction_type not in POSTING_TYPES:
            raise ValidationFailed("Use the transfer endpoint to move money between accounts")
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationFailed("Amount must be greater than 0")

        async with self.uow.transaction():
            account = await self.uow.accounts.get_owned(account_id, actor_id, for_update=True)
            if account is None:
                raise NotFound("Account not found")
            if account.status != "active":
                raise ValidationFailed("Account is not active")

            balance = to_money(account.balance)
            if transaction_type == "debit":
                if balance < amount:
                    raise InsufficientFunds("Insufficient balance")
                new_balance = balance - amount
            else:
                new_balance = balance + amount

            now = utcnow()
            entry = Transaction(
                transaction_id=uuid4(),
                account_id=account.account_id,
                counterpart_account_id=None,
                transaction_type=transaction_type,
                entry_type=transaction_type,
                amount=amount,
                currency=account.currency,
                description=description,
                reference_number=generate_reference_number(),
                status="completed",
                balance_after=new_balance,
                created_at=now,
                updated_at=now,
            )
            await self.uow.transactions.add(entry)
            account.balance = new_balance
            account.updated_at = now
            await self.uow.accounts.save(account)

        logger.info(
            "Posted %s of %s on account=%s ref=%s", transaction_type, amount, account_id, entry.reference_number
        )
        try:
            self.publisher.publish(
                account_topic(account_id), {"event": "transaction_created", "transaction": serialize_tx(entry)}
            )
        except Exception as e:
            logger.exception("Failed to publish transaction_created for %s: %s", account_id, e)
        return entry

    async def list_transactions(
        self,
        actor_id: UUID,
        account_id: Optional[UUID] = None,
        transaction_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Transaction]:
        return await self.uow.transactions.list_for_user(
            actor_id, account_id=account_id, transaction_type=transaction_type, start=start, end=end
        )

    async def get_transaction(self, actor_id: UUID, transaction_id: UUID) -> Transaction:
        entry = await self.uow.transactions.get_for_user(transaction_id, actor_id)
        if entry is None:
            raise NotFound("Transaction not found")
        return entry

    async def statement(self, actor_id: UUID, account_id: UUID) -> Tuple[Account, List[Transaction]]:
        account = await self.get_account(actor_id, account_id)
        entries = await self.uow.transactions.list_for_account(account_id, limit=STATEMENT_LIMIT)
        return account, entries

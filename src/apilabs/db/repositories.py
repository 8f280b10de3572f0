"""
apilabs/db/repositories.py

Repository interfaces per entity plus their SQLAlchemy implementations.

Services depend on the abstract classes and a UnitOfWork that groups them
over one session; the API layer builds a SqlUnitOfWork per request.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apilabs.db.models import Account, Beneficiary, Card, Loan, Transaction, User
from apilabs.logging_config import get_logger
from apilabs.services.errors import PersistenceFailure

logger = get_logger("apilabs.db.repositories")


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------
class AccountRepository(ABC):
    @abstractmethod
    async def get(self, account_id: UUID) -> Optional[Account]: ...

    @abstractmethod
    async def get_owned(self, account_id: UUID, user_id: UUID, for_update: bool = False) -> Optional[Account]: ...

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> List[Account]: ...

    @abstractmethod
    async def lock_pair(self, first_id: UUID, second_id: UUID) -> Tuple[Optional[Account], Optional[Account]]:
        """
        Load two accounts for update. Either side is None when missing.
        """

    @abstractmethod
    async def add(self, account: Account) -> Account: ...

    @abstractmethod
    async def save(self, account: Account) -> Account: ...

    @abstractmethod
    async def delete(self, account: Account) -> None: ...


class TransactionRepository(ABC):
    @abstractmethod
    async def add(self, entry: Transaction) -> Transaction: ...

    @abstractmethod
    async def get_for_user(self, transaction_id: UUID, user_id: UUID) -> Optional[Transaction]: ...

    @abstractmethod
    async def list_for_user(
        self,
        user_id: UUID,
        account_id: Optional[UUID] = None,
        transaction_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Transaction]: ...

    @abstractmethod
    async def list_for_account(self, account_id: UUID, limit: int = 50) -> List[Transaction]: ...

    @abstractmethod
    async def references_account(self, account_id: UUID) -> bool: ...


class LoanRepository(ABC):
    @abstractmethod
    async def get(self, loan_id: UUID, for_update: bool = False) -> Optional[Loan]: ...

    @abstractmethod
    async def get_owned(self, loan_id: UUID, user_id: UUID, for_update: bool = False) -> Optional[Loan]: ...

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> List[Loan]: ...

    @abstractmethod
    async def add(self, loan: Loan) -> Loan: ...

    @abstractmethod
    async def save(self, loan: Loan) -> Loan: ...


class UnitOfWork(ABC):
    """
    Repositories sharing one storage transaction.

    ``transaction()`` commits when the block exits normally and rolls back
    otherwise, so multi-row mutations land together or not at all.
    """

    users: "SqlUserRepository"
    accounts: AccountRepository
    transactions: TransactionRepository
    loans: LoanRepository
    cards: "SqlCardRepository"
    beneficiaries: "SqlBeneficiaryRepository"

    @abstractmethod
    def transaction(self):
        """
        Async context manager wrapping a single atomic unit of writes.
        """


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------
class _SqlRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _persist(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj


class SqlUserRepository(_SqlRepository):
    async def get(self, user_id: UUID) -> Optional[User]:
        res = await self.session.execute(select(User).where(User.user_id == user_id))
        return res.scalars().first()

    async def add(self, user: User) -> User:
        return await self._persist(user)


class SqlAccountRepository(_SqlRepository, AccountRepository):
    async def get(self, account_id: UUID) -> Optional[Account]:
        res = await self.session.execute(select(Account).where(Account.account_id == account_id))
        return res.scalars().first()

    async def get_owned(self, account_id: UUID, user_id: UUID, for_update: bool = False) -> Optional[Account]:
        stmt = select(Account).where(Account.account_id == account_id, Account.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def list_for_user(self, user_id: UUID) -> List[Account]:
        stmt = select(Account).where(Account.user_id == user_id).order_by(Account.created_at)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def lock_pair(self, first_id: UUID, second_id: UUID) -> Tuple[Optional[Account], Optional[Account]]:
        # A single ordered FOR UPDATE keeps lock acquisition order stable across requests
        stmt = (
            select(Account)
            .where(Account.account_id.in_([first_id, second_id]))
            .order_by(Account.account_id)
            .with_for_update()
        )
        res = await self.session.execute(stmt)
        by_id = {a.account_id: a for a in res.scalars().all()}
        return by_id.get(first_id), by_id.get(second_id)

    async def add(self, account: Account) -> Account:
        return await self._persist(account)

    async def save(self, account: Account) -> Account:
        return await self._persist(account)

    async def delete(self, account: Account) -> None:
        await self.session.delete(account)
        await self.session.flush()


class SqlTransactionRepository(_SqlRepository, TransactionRepository):
    async def add(self, entry: Transaction) -> Transaction:
        return await self._persist(entry)

    async def get_for_user(self, transaction_id: UUID, user_id: UUID) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .join(Account, Account.account_id == Transaction.account_id)
            .where(Transaction.transaction_id == transaction_id, Account.user_id == user_id)
        )
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def list_for_user(
        self,
        user_id: UUID,
        account_id: Optional[UUID] = None,
        transaction_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .join(Account, Account.account_id == Transaction.account_id)
            .where(Account.user_id == user_id)
        )
        if account_id is not None:
            stmt = stmt.where(Transaction.account_id == account_id)
        if transaction_type:
            stmt = stmt.where(Transaction.transaction_type == transaction_type)
        if start is not None and end is not None:
            stmt = stmt.where(Transaction.created_at.between(start, end))
        stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc()).limit(limit)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_for_account(self, account_id: UUID, limit: int = 50) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def references_account(self, account_id: UUID) -> bool:
        stmt = (
            select(Transaction.transaction_id)
            .where(
                or_(
                    Transaction.account_id == account_id,
                    Transaction.counterpart_account_id == account_id,
                )
            )
            .limit(1)
        )
        res = await self.session.execute(stmt)
        return res.first() is not None


class SqlLoanRepository(_SqlRepository, LoanRepository):
    async def get(self, loan_id: UUID, for_update: bool = False) -> Optional[Loan]:
        stmt = select(Loan).where(Loan.loan_id == loan_id)
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def get_owned(self, loan_id: UUID, user_id: UUID, for_update: bool = False) -> Optional[Loan]:
        stmt = select(Loan).where(Loan.loan_id == loan_id, Loan.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def list_for_user(self, user_id: UUID) -> List[Loan]:
        stmt = select(Loan).where(Loan.user_id == user_id).order_by(Loan.created_at.desc())
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def add(self, loan: Loan) -> Loan:
        return await self._persist(loan)

    async def save(self, loan: Loan) -> Loan:
        return await self._persist(loan)


class SqlCardRepository(_SqlRepository):
    async def get_owned(self, card_id: UUID, user_id: UUID) -> Optional[Card]:
        res = await self.session.execute(select(Card).where(Card.card_id == card_id, Card.user_id == user_id))
        return res.scalars().first()

    async def list_for_user(self, user_id: UUID) -> List[Card]:
        res = await self.session.execute(select(Card).where(Card.user_id == user_id).order_by(Card.created_at))
        return list(res.scalars().all())

    async def save(self, card: Card) -> Card:
        return await self._persist(card)

    async def delete(self, card: Card) -> None:
        await self.session.delete(card)
        await self.session.flush()


class SqlBeneficiaryRepository(_SqlRepository):
    async def get_owned(self, beneficiary_id: UUID, user_id: UUID) -> Optional[Beneficiary]:
        stmt = select(Beneficiary).where(
            Beneficiary.beneficiary_id == beneficiary_id, Beneficiary.user_id == user_id
        )
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def list_for_user(self, user_id: UUID) -> List[Beneficiary]:
        stmt = select(Beneficiary).where(Beneficiary.user_id == user_id).order_by(Beneficiary.created_at)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def save(self, beneficiary: Beneficiary) -> Beneficiary:
        return await self._persist(beneficiary)

    async def delete(self, beneficiary: Beneficiary) -> None:
        await self.session.delete(beneficiary)
        await self.session.flush()


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = SqlUserRepository(session)
        self.accounts = SqlAccountRepository(session)
        self.transactions = SqlTransactionRepository(session)
        self.loans = SqlLoanRepository(session)
        self.cards = SqlCardRepository(session)
        self.beneficiaries = SqlBeneficiaryRepository(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlUnitOfWork"]:
        try:
            yield self
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Storage failure, transaction rolled back: %s", e)
            raise PersistenceFailure("Database error; no changes were applied") from e
        except Exception:
            await self.session.rollback()
            raise

import os
import tempfile

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="apilabs-logs-"))
os.environ.setdefault("DB_AUTO_CREATE", "false")

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import httpx
import jwt
import pytest
import pytest_asyncio
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from apilabs.api.deps import get_publisher
from apilabs.app import app
from apilabs.config import JWT_ALGORITHM, JWT_SECRET
from apilabs.db.deps import get_db
from apilabs.db.models import Account, Loan, Transaction, User, utcnow
from apilabs.db.repositories import (
    AccountRepository,
    LoanRepository,
    TransactionRepository,
    UnitOfWork,
)
from apilabs.db.session import init_db, serialize_sqlite_writes
from apilabs.services.errors import PersistenceFailure
from apilabs.services.notifications import NotificationPublisher


class RecordingPublisher(NotificationPublisher):
    def __init__(self):
        self.events = []

    def publish(self, topic, payload):
        self.events.append((topic, payload))


# ---------------------------------------------------------------------------
# In-memory repositories
# ---------------------------------------------------------------------------
class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.rows: Dict[UUID, Account] = {}

    async def get(self, account_id):
        return self.rows.get(account_id)

    async def get_owned(self, account_id, user_id, for_update=False):
        account = self.rows.get(account_id)
        return account if account is not None and account.user_id == user_id else None

    async def list_for_user(self, user_id):
        return [a for a in self.rows.values() if a.user_id == user_id]

    async def lock_pair(self, first_id, second_id):
        return self.rows.get(first_id), self.rows.get(second_id)

    async def add(self, account):
        self.rows[account.account_id] = account
        return account

    async def save(self, account):
        self.rows[account.account_id] = account
        return account

    async def delete(self, account):
        self.rows.pop(account.account_id, None)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self, accounts: InMemoryAccountRepository):
        self.accounts = accounts
        self.rows: List[Transaction] = []
        self.fail_on_add: Optional[int] = None

    async def add(self, entry):
        if self.fail_on_add is not None and len(self.rows) + 1 >= self.fail_on_add:
            raise SQLAlchemyError("disk I/O error")
        self.rows.append(entry)
        return entry

    def _owned(self, entry, user_id):
        account = self.accounts.rows.get(entry.account_id)
        return account is not None and account.user_id == user_id

    async def get_for_user(self, transaction_id, user_id):
        for entry in self.rows:
            if entry.transaction_id == transaction_id and self._owned(entry, user_id):
                return entry
        return None

    async def list_for_user(self, user_id, account_id=None, transaction_type=None, start=None, end=None, limit=100):
        rows = [e for e in self.rows if self._owned(e, user_id)]
        if account_id is not None:
            rows = [e for e in rows if e.account_id == account_id]
        if transaction_type:
            rows = [e for e in rows if e.transaction_type == transaction_type]
        return list(reversed(rows))[:limit]

    async def list_for_account(self, account_id, limit=50):
        return list(reversed([e for e in self.rows if e.account_id == account_id]))[:limit]

    async def references_account(self, account_id):
        return any(account_id in (e.account_id, e.counterpart_account_id) for e in self.rows)


class InMemoryLoanRepository(LoanRepository):
    def __init__(self):
        self.rows: Dict[UUID, Loan] = {}

    async def get(self, loan_id, for_update=False):
        return self.rows.get(loan_id)

    async def get_owned(self, loan_id, user_id, for_update=False):
        loan = self.rows.get(loan_id)
        return loan if loan is not None and loan.user_id == user_id else None

    async def list_for_user(self, user_id):
        return [l for l in self.rows.values() if l.user_id == user_id]

    async def add(self, loan):
        self.rows[loan.loan_id] = loan
        return loan

    async def save(self, loan):
        self.rows[loan.loan_id] = loan
        return loan


class InMemoryUnitOfWork(UnitOfWork):
    """
    Restores account balances/statuses, loans and the ledger when a block fails.
    """

    def __init__(self):
        self.accounts = InMemoryAccountRepository()
        self.transactions = InMemoryTransactionRepository(self.accounts)
        self.loans = InMemoryLoanRepository()
        self.commits = 0
        self.rollbacks = 0

    def _snapshot(self):
        return (
            {k: (a.balance, a.status) for k, a in self.accounts.rows.items()},
            {k: (l.outstanding_balance, l.status) for k, l in self.loans.rows.items()},
            list(self.transactions.rows),
        )

    def _restore(self, snapshot):
        accounts, loans, ledger = snapshot
        for k, (balance, status) in accounts.items():
            self.accounts.rows[k].balance = balance
            self.accounts.rows[k].status = status
        for k, (outstanding, status) in loans.items():
            self.loans.rows[k].outstanding_balance = outstanding
            self.loans.rows[k].status = status
        self.transactions.rows[:] = ledger

    @asynccontextmanager
    async def transaction(self):
        snapshot = self._snapshot()
        try:
            yield self
            self.commits += 1
        except SQLAlchemyError as e:
            self._restore(snapshot)
            self.rollbacks += 1
            raise PersistenceFailure("Database error; no changes were applied") from e
        except Exception:
            self._restore(snapshot)
            self.rollbacks += 1
            raise


def build_account(user_id, balance, currency="USD", status="active", account_type="checking", number=None):
    now = utcnow()
    return Account(
        account_id=uuid4(),
        user_id=user_id,
        account_number=number or f"CH{uuid4().hex[:12].upper()}",
        account_type=account_type,
        balance=Decimal(balance),
        currency=currency,
        status=status,
        overdraft_limit=Decimal("0.00"),
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def memory_uow():
    return InMemoryUnitOfWork()


# ---------------------------------------------------------------------------
# SQLite-backed HTTP client
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = serialize_sqlite_writes(create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'apilabs-test.db'}"))
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_factory, publisher):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_publisher] = lambda: publisher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


def make_token(user_id) -> str:
    return jwt.encode({"id": str(user_id), "email": f"{user_id}@example.com"}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_headers(user_id) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def make_user(session_factory):
    async def _make_user(role="user"):
        user_id = uuid4()
        async with session_factory() as session:
            session.add(User(user_id=user_id, email=f"{user_id.hex}@example.com", name="Test User", role=role))
            await session.commit()
        return user_id

    return _make_user


@pytest.fixture
def make_account(session_factory):
    async def _make_account(user_id, balance="0.00", currency="USD", status="active", account_type="checking"):
        account = build_account(user_id, balance, currency=currency, status=status, account_type=account_type)
        async with session_factory() as session:
            session.add(account)
            await session.commit()
        return account.account_id

    return _make_account


@pytest.fixture
def fetch(session_factory):
    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest.fixture
def count_entries(session_factory):
    async def _count(account_id=None):
        from sqlalchemy import func, select

        stmt = select(func.count()).select_from(Transaction)
        if account_id is not None:
            stmt = stmt.where(Transaction.account_id == account_id)
        async with session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    return _count

# apilabs/db/models.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Uuid

from apilabs.db.session import Base


def utcnow() -> datetime:
    """
    Naive UTC timestamp, as stored in the TIMESTAMP columns.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    # "user" or "admin"; admins may move loans through their lifecycle
    role = Column(String(20), nullable=False, default="user")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Account(Base):
    __tablename__ = "accounts"

    account_id = Column(Uuid(as_uuid=True), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id"), nullable=False, index=True)
    account_number = Column(String(20), unique=True, nullable=False)
    account_type = Column(String(20), nullable=False)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="active")
    overdraft_limit = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Transaction(Base):
    __tablename__ = "transactions"

    transaction_id = Column(Uuid(as_uuid=True), primary_key=True)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False, index=True)
    # The other account of a transfer leg; NULL for single-account postings
    counterpart_account_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.account_id"), nullable=True)
    transaction_type = Column(String(20), nullable=False)
    entry_type = Column(String(10), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    description = Column(String(500))
    reference_number = Column(String(40), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    balance_after = Column(Numeric(15, 2))
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Loan(Base):
    __tablename__ = "loans"

    loan_id = Column(Uuid(as_uuid=True), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id"), nullable=False, index=True)
    loan_number = Column(String(30), unique=True, nullable=False)
    loan_type = Column(String(20), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    term_months = Column(Integer, nullable=False)
    monthly_payment = Column(Numeric(12, 2), nullable=False)
    outstanding_balance = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    disbursement_date = Column(DateTime)
    next_payment_date = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Card(Base):
    __tablename__ = "cards"

    card_id = Column(Uuid(as_uuid=True), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id"), nullable=False, index=True)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False)
    card_number = Column(String(16), unique=True, nullable=False)
    card_type = Column(String(20), nullable=False)
    cardholder_name = Column(String(255), nullable=False)
    expiry_date = Column(String(5), nullable=False)
    cvv = Column(String(4), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    card_limit = Column(Numeric(15, 2), default=0)
    available_limit = Column(Numeric(15, 2), default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Beneficiary(Base):
    __tablename__ = "beneficiaries"

    beneficiary_id = Column(Uuid(as_uuid=True), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id"), nullable=False, index=True)
    beneficiary_name = Column(String(100), nullable=False)
    account_number = Column(String(20), nullable=False)
    bank_name = Column(String(100), nullable=False)
    ifsc_code = Column(String(11))
    swift_code = Column(String(11))
    relationship = Column(String(50))
    nickname = Column(String(100))
    is_verified = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

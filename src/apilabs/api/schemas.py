from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# matches the Numeric(15, 2) money columns
MONEY_DIGITS = 15
MONEY_PLACES = 2


class ApiModel(BaseModel):
    """
    camelCase on the wire, snake_case accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageOut(ApiModel):
    message: str


# ---------------------------------------------------------------------------
# Accounts & transactions
# ---------------------------------------------------------------------------
class AccountCreate(ApiModel):
    account_type: Literal["savings", "checking", "credit"]
    currency: Literal["USD", "EUR", "GBP", "INR"] = "USD"
    balance: Decimal = Field(Decimal("0.00"), ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)


class AccountUpdate(ApiModel):
    status: Optional[Literal["active", "frozen", "closed"]] = None


class AccountOut(ApiModel):
    account_id: UUID
    user_id: UUID
    account_number: str
    account_type: str
    balance: float
    currency: str
    status: str
    overdraft_limit: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AccountEnvelope(ApiModel):
    message: Optional[str] = None
    account: AccountOut


class BalanceOut(ApiModel):
    balance: float
    currency: str
    account_number: str


class TransactionOut(ApiModel):
    transaction_id: UUID
    account_id: UUID
    counterpart_account_id: Optional[UUID] = None
    transaction_type: str
    entry_type: str
    amount: float
    currency: str
    description: Optional[str] = None
    reference_number: str
    status: str
    balance_after: Optional[float] = None
    created_at: Optional[str] = None


class TransactionCreate(ApiModel):
    account_id: UUID
    transaction_type: Literal["debit", "credit", "transfer"]
    amount: Decimal = Field(..., gt=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, examples=[100.00])
    description: Optional[str] = Field(None, max_length=500)


class TransactionEnvelope(ApiModel):
    message: Optional[str] = None
    transaction: TransactionOut


class StatementAccount(ApiModel):
    account_number: str
    account_type: str
    balance: float


class StatementOut(ApiModel):
    account: StatementAccount
    transactions: List[TransactionOut]


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------
class TransferIn(ApiModel):
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, examples=[150.00])
    description: Optional[str] = Field(None, max_length=500)


class TransferOut(ApiModel):
    message: str
    debit_transaction: TransactionOut
    credit_transaction: TransactionOut


class TransferStatusOut(ApiModel):
    status: str
    reference_number: str
    amount: float
    created_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------
class LoanCreate(ApiModel):
    loan_type: Literal["personal", "home", "auto", "education", "business"]
    amount: Decimal = Field(..., ge=1000, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, examples=[12000])
    interest_rate: Decimal = Field(..., ge=0, le=100, max_digits=5, decimal_places=2, examples=[6])
    term_months: int = Field(..., ge=1, le=360, examples=[12])


class LoanStatusUpdate(ApiModel):
    status: Literal["pending", "approved", "active", "paid", "defaulted"]


class LoanPaymentIn(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, examples=[1032.80])


class LoanOut(ApiModel):
    loan_id: UUID
    user_id: UUID
    loan_number: str
    loan_type: str
    amount: float
    interest_rate: float
    term_months: int
    monthly_payment: float
    outstanding_balance: float
    status: str
    disbursement_date: Optional[str] = None
    next_payment_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class LoanEnvelope(ApiModel):
    message: Optional[str] = None
    loan: LoanOut


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------
class CardCreate(ApiModel):
    account_id: UUID
    card_type: Literal["debit", "credit", "prepaid"]
    cardholder_name: str = Field(..., min_length=2, max_length=255)
    card_limit: Decimal = Field(Decimal("0.00"), ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)


class CardUpdate(ApiModel):
    cardholder_name: Optional[str] = Field(None, min_length=2, max_length=255)
    card_limit: Optional[Decimal] = Field(None, ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)


class CardOut(ApiModel):
    card_id: UUID
    user_id: UUID
    account_id: UUID
    card_number: str
    last4: Optional[str] = None
    card_type: str
    cardholder_name: str
    expiry_date: str
    status: str
    card_limit: Optional[float] = None
    available_limit: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CardEnvelope(ApiModel):
    message: Optional[str] = None
    card: CardOut


# ---------------------------------------------------------------------------
# Beneficiaries
# ---------------------------------------------------------------------------
class BeneficiaryCreate(ApiModel):
    beneficiary_name: str = Field(..., min_length=3, max_length=100)
    account_number: str = Field(..., min_length=8, max_length=20)
    bank_name: str = Field(..., min_length=3, max_length=100)
    ifsc_code: Optional[str] = Field(None, pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    swift_code: Optional[str] = Field(None, max_length=11)
    relationship: Optional[str] = Field(None, max_length=50)
    nickname: Optional[str] = Field(None, max_length=100)


class BeneficiaryUpdate(ApiModel):
    beneficiary_name: Optional[str] = Field(None, min_length=3, max_length=100)
    account_number: Optional[str] = Field(None, min_length=8, max_length=20)
    bank_name: Optional[str] = Field(None, min_length=3, max_length=100)
    ifsc_code: Optional[str] = Field(None, pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    swift_code: Optional[str] = Field(None, max_length=11)
    relationship: Optional[str] = Field(None, max_length=50)
    nickname: Optional[str] = Field(None, max_length=100)


class BeneficiaryOut(ApiModel):
    beneficiary_id: UUID
    user_id: UUID
    beneficiary_name: str
    account_number: str
    bank_name: str
    ifsc_code: Optional[str] = None
    swift_code: Optional[str] = None
    relationship: Optional[str] = None
    nickname: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[str] = None


class BeneficiaryEnvelope(ApiModel):
    message: Optional[str] = None
    beneficiary: BeneficiaryOut

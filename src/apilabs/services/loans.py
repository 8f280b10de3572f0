"""
Loan origination and repayment.

The fixed monthly payment follows the standard amortization formula

    M = P * r * (1 + r)**n / ((1 + r)**n - 1),  r = annual_rate / 100 / 12

evaluated in Decimal. Payments decrement the outstanding balance directly and
may never exceed it.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List
from uuid import UUID, uuid4

from apilabs.db.models import Loan, utcnow
from apilabs.db.repositories import UnitOfWork
from apilabs.logging_config import get_logger
from apilabs.services.errors import InvalidPayment, NotFound, ValidationFailed
from apilabs.services.money import CENT, ZERO, generate_loan_number, to_money
from apilabs.services.notifications import NotificationPublisher, user_topic

logger = get_logger("apilabs.services.loans")

LOAN_TYPES = ("personal", "home", "auto", "education", "business")
LOAN_STATUSES = ("pending", "approved", "active", "paid", "defaulted")

MIN_LOAN_AMOUNT = Decimal("1000")
MAX_TERM_MONTHS = 360

# Balances below half a cent count as settled
PAID_EPSILON = Decimal("0.005")


def monthly_payment(amount, interest_rate, term_months: int) -> Decimal:
    principal = Decimal(str(amount))
    if term_months <= 0:
        raise ValueError("term_months must be positive")
    rate = Decimal(str(interest_rate)) / Decimal(100) / Decimal(12)
    if rate == 0:
        return (principal / term_months).quantize(CENT, rounding=ROUND_HALF_UP)
    growth = (1 + rate) ** term_months
    payment = principal * rate * growth / (growth - 1)
    return payment.quantize(CENT, rounding=ROUND_HALF_UP)


class LoanService:
    def __init__(self, uow: UnitOfWork, publisher: NotificationPublisher):
        self.uow = uow
        self.publisher = publisher

    async def apply_for_loan(
        self, actor_id: UUID, loan_type: str, amount, interest_rate, term_months: int
    ) -> Loan:
        if loan_type not in LOAN_TYPES:
            raise ValidationFailed("Invalid loan type")
        principal = to_money(amount)
        if principal < MIN_LOAN_AMOUNT:
            raise ValidationFailed("Loan amount must be at least 1000")
        if not 1 <= term_months <= MAX_TERM_MONTHS:
            raise ValidationFailed("Duration must be between 1 and 360 months")
        rate = Decimal(str(interest_rate))
        if rate < 0:
            raise ValidationFailed("Interest rate must be non-negative")

        now = utcnow()
        loan = Loan(
            loan_id=uuid4(),
            user_id=actor_id,
            loan_number=generate_loan_number(),
            loan_type=loan_type,
            amount=principal,
            interest_rate=rate,
            term_months=term_months,
            monthly_payment=monthly_payment(principal, rate, term_months),
            outstanding_balance=principal,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        async with self.uow.transaction():
            await self.uow.loans.add(loan)
        logger.info(
            "Loan %s applied user=%s amount=%s rate=%s term=%s monthly=%s",
            loan.loan_number,
            actor_id,
            principal,
            rate,
            term_months,
            loan.monthly_payment,
        )
        return loan

    async def list_loans(self, actor_id: UUID) -> List[Loan]:
        return await self.uow.loans.list_for_user(actor_id)

    async def get_loan(self, actor_id: UUID, loan_id: UUID) -> Loan:
        loan = await self.uow.loans.get_owned(loan_id, actor_id)
        if loan is None:
            raise NotFound("Loan not found")
        return loan

    async def make_payment(self, actor_id: UUID, loan_id: UUID, amount) -> Loan:
        payment = to_money(amount)
        if payment <= ZERO:
            raise ValidationFailed("Payment amount must be greater than 0")

        async with self.uow.transaction():
            loan = await self.uow.loans.get_owned(loan_id, actor_id, for_update=True)
            if loan is None:
                raise NotFound("Loan not found")
            outstanding = to_money(loan.outstanding_balance)
            if payment > outstanding:
                logger.warning(
                    "Loan payment rejected loan=%s outstanding=%s payment=%s", loan_id, outstanding, payment
                )
                raise InvalidPayment("Payment amount exceeds outstanding balance")

            remaining = outstanding - payment
            if remaining < PAID_EPSILON:
                remaining = ZERO
                loan.status = "paid"
            loan.outstanding_balance = remaining
            loan.updated_at = utcnow()
            await self.uow.loans.save(loan)

        logger.info("Loan payment loan=%s amount=%s remaining=%s status=%s", loan_id, payment, remaining, loan.status)
        return loan

    async def update_status(self, loan_id: UUID, status: str) -> Loan:
        if status not in LOAN_STATUSES:
            raise ValidationFailed("Invalid loan status")

        async with self.uow.transaction():
            loan = await self.uow.loans.get(loan_id, for_update=True)
            if loan is None:
                raise NotFound("Loan not found")
            loan.status = status
            now = utcnow()
            if status == "active" and loan.disbursement_date is None:
                loan.disbursement_date = now
            loan.updated_at = now
            await self.uow.loans.save(loan)

        logger.info("Loan %s status -> %s", loan_id, status)
        try:
            self.publisher.publish(
                user_topic(loan.user_id),
                {"event": "loan_status_updated", "loan_id": str(loan.loan_id), "status": loan.status},
            )
        except Exception as e:
            logger.exception("Failed to publish loan_status_updated for %s: %s", loan_id, e)
        return loan

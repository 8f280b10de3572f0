from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from apilabs.db.models import User
from apilabs.db.serializers import serialize_loan
from apilabs.logging_config import get_logger
from apilabs.services.errors import BankingError
from apilabs.services.loans import LoanService
from .deps import get_current_user, get_loan_service, require_admin
from .schemas import LoanCreate, LoanEnvelope, LoanOut, LoanPaymentIn, LoanStatusUpdate

logger = get_logger("apilabs.api.loans")

router = APIRouter(tags=["loans"])


@router.get("/loans", response_model=List[LoanOut])
async def list_loans(user: User = Depends(get_current_user), service: LoanService = Depends(get_loan_service)):
    loans = await service.list_loans(user.user_id)
    return [serialize_loan(l) for l in loans]


@router.get("/loans/{loan_id}", response_model=LoanOut)
async def get_loan(
    loan_id: UUID,
    user: User = Depends(get_current_user),
    service: LoanService = Depends(get_loan_service),
):
    try:
        loan = await service.get_loan(user.user_id, loan_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return serialize_loan(loan)


@router.post("/loans", response_model=LoanEnvelope, status_code=201)
async def apply_for_loan(
    payload: LoanCreate,
    user: User = Depends(get_current_user),
    service: LoanService = Depends(get_loan_service),
):
    logger.info(
        "Loan application user=%s type=%s amount=%s rate=%s term=%s",
        user.user_id,
        payload.loan_type,
        payload.amount,
        payload.interest_rate,
        payload.term_months,
    )
    try:
        loan = await service.apply_for_loan(
            user.user_id, payload.loan_type, payload.amount, payload.interest_rate, payload.term_months
        )
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Loan application submitted successfully", "loan": serialize_loan(loan)}


@router.api_route("/loans/{loan_id}/status", methods=["PUT", "PATCH"], response_model=LoanEnvelope)
async def update_loan_status(
    loan_id: UUID,
    payload: LoanStatusUpdate,
    admin: User = Depends(require_admin),
    service: LoanService = Depends(get_loan_service),
):
    logger.info("Loan status update loan=%s status=%s by=%s", loan_id, payload.status, admin.user_id)
    try:
        loan = await service.update_status(loan_id, payload.status)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Loan status updated successfully", "loan": serialize_loan(loan)}


@router.post("/loans/{loan_id}/payment", response_model=LoanEnvelope)
async def make_loan_payment(
    loan_id: UUID,
    payload: LoanPaymentIn,
    user: User = Depends(get_current_user),
    service: LoanService = Depends(get_loan_service),
):
    logger.info("Loan payment loan=%s amount=%s user=%s", loan_id, payload.amount, user.user_id)
    try:
        loan = await service.make_payment(user.user_id, loan_id, payload.amount)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Payment successful", "loan": serialize_loan(loan)}

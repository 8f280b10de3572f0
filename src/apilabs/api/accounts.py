from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from apilabs.db.models import User
from apilabs.db.serializers import serialize_account, serialize_tx
from apilabs.logging_config import get_logger
from apilabs.services.accounts import AccountService
from apilabs.services.errors import BankingError
from .deps import get_account_service, get_current_user
from .schemas import (
    AccountCreate,
    AccountEnvelope,
    AccountOut,
    AccountUpdate,
    BalanceOut,
    MessageOut,
    StatementOut,
    TransactionCreate,
    TransactionEnvelope,
    TransactionOut,
)

logger = get_logger("apilabs.api.accounts")

router = APIRouter(tags=["accounts"])


# ============= ACCOUNTS =============
@router.get("/accounts", response_model=List[AccountOut])
async def list_accounts(
    user: User = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    accounts = await service.list_accounts(user.user_id)
    return [serialize_account(a) for a in accounts]


@router.get("/accounts/{account_id}", response_model=AccountOut)
async def get_account(
    account_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    try:
        account = await service.get_account(user.user_id, account_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return serialize_account(account)


@router.post("/accounts", response_model=AccountEnvelope, status_code=201)
async def create_account(
    payload: AccountCreate,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    logger.info("Create account user=%s type=%s currency=%s", user.user_id, payload.account_type, payload.currency)
    try:
        account = await service.open_account(user.user_id, payload.account_type, payload.currency, payload.balance)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Account created successfully", "account": serialize_account(account)}


@router.api_route("/accounts/{account_id}", methods=["PUT", "PATCH"], response_model=AccountEnvelope)
async def update_account(
    account_id: UUID,
    payload: AccountUpdate,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    logger.info("Update account=%s user=%s status=%s", account_id, user.user_id, payload.status)
    try:
        account = await service.update_account(user.user_id, account_id, payload.status)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Account updated successfully", "account": serialize_account(account)}


@router.delete("/accounts/{account_id}", response_model=MessageOut)
async def delete_account(
    account_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    try:
        await service.delete_account(user.user_id, account_id)
    except BankingError as e:
        logger.warning("Delete account=%s rejected: %s", account_id, e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Account deleted successfully"}


@router.get("/accounts/{account_id}/balance", response_model=BalanceOut)
async def get_account_balance(
    account_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    try:
        account = await service.get_account(user.user_id, account_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"balance": float(account.balance), "currency": account.currency, "account_number": account.account_number}


@router.get("/accounts/{account_id}/statement", response_model=StatementOut)
async def get_account_statement(
    account_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    try:
        account, entries = await service.statement(user.user_id, account_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "account": {
            "account_number": account.account_number,
            "account_type": account.account_type,
            "balance": float(account.balance),
        },
        "transactions": [serialize_tx(t) for t in entries],
    }


# ============= TRANSACTIONS =============
@router.get("/transactions", response_model=List[TransactionOut])
async def list_transactions(
    account_id: Optional[UUID] = Query(None, alias="accountId"),
    transaction_type: Optional[str] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    logger.info(
        "Fetching transactions user=%s account=%s type=%s range=%s..%s",
        user.user_id,
        account_id,
        transaction_type,
        start_date,
        end_date,
    )
    entries = await service.list_transactions(
        user.user_id, account_id=account_id, transaction_type=transaction_type, start=start_date, end=end_date
    )
    return [serialize_tx(t) for t in entries]


@router.get("/transactions/{transaction_id}", response_model=TransactionOut)
async def get_transaction(
    transaction_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    try:
        entry = await service.get_transaction(user.user_id, transaction_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return serialize_tx(entry)


@router.post("/transactions", response_model=TransactionEnvelope, status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    logger.info(
        "Post %s account=%s amount=%s user=%s",
        payload.transaction_type,
        payload.account_id,
        payload.amount,
        user.user_id,
    )
    try:
        entry = await service.post_entry(
            user.user_id, payload.account_id, payload.transaction_type, payload.amount, payload.description
        )
    except BankingError as e:
        logger.warning("Posting rejected account=%s: %s", payload.account_id, e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Transaction created successfully", "transaction": serialize_tx(entry)}

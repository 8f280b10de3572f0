from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from apilabs.db.models import User
from apilabs.db.serializers import serialize_tx
from apilabs.logging_config import get_logger
from apilabs.services.errors import BankingError
from apilabs.services.transfers import TransferService
from .deps import get_current_user, get_transfer_service
from .schemas import TransferIn, TransferOut, TransferStatusOut

logger = get_logger("apilabs.api.transfers")

router = APIRouter(tags=["transfers"])


@router.post("/transfers", response_model=TransferOut, status_code=201)
async def create_transfer(
    payload: TransferIn,
    user: User = Depends(get_current_user),
    service: TransferService = Depends(get_transfer_service),
):
    """
    Move funds from one of the caller's accounts to any account.

    Both ledger legs and both balance updates are committed together.
    """
    logger.info(
        "Transfer request user=%s from=%s to=%s amount=%s",
        user.user_id,
        payload.from_account_id,
        payload.to_account_id,
        payload.amount,
    )
    try:
        result = await service.transfer(
            user.user_id,
            payload.from_account_id,
            payload.to_account_id,
            payload.amount,
            payload.description,
        )
    except BankingError as e:
        logger.warning(
            "Transfer failed from=%s to=%s: %s", payload.from_account_id, payload.to_account_id, e.message
        )
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {
        "message": "Transfer initiated successfully",
        "debit_transaction": serialize_tx(result.debit),
        "credit_transaction": serialize_tx(result.credit),
    }


@router.get("/transfers/{transaction_id}/status", response_model=TransferStatusOut)
async def get_transfer_status(
    transaction_id: UUID,
    user: User = Depends(get_current_user),
    service: TransferService = Depends(get_transfer_service),
):
    try:
        entry = await service.transfer_status(user.user_id, transaction_id)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "status": entry.status,
        "reference_number": entry.reference_number,
        "amount": float(entry.amount),
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }

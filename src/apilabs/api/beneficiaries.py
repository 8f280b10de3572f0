from typing import List
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException

from apilabs.db.models import Beneficiary, User, utcnow
from apilabs.db.repositories import SqlUnitOfWork
from apilabs.db.serializers import serialize_beneficiary
from apilabs.logging_config import get_logger
from apilabs.services.errors import BankingError
from .deps import get_current_user, get_uow
from .schemas import BeneficiaryCreate, BeneficiaryEnvelope, BeneficiaryOut, BeneficiaryUpdate, MessageOut

logger = get_logger("apilabs.api.beneficiaries")

router = APIRouter(tags=["beneficiaries"])


async def _owned_beneficiary(uow: SqlUnitOfWork, beneficiary_id: UUID, user: User) -> Beneficiary:
    beneficiary = await uow.beneficiaries.get_owned(beneficiary_id, user.user_id)
    if not beneficiary:
        raise HTTPException(status_code=404, detail="Beneficiary not found")
    return beneficiary


@router.get("/beneficiaries", response_model=List[BeneficiaryOut])
async def list_beneficiaries(user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    beneficiaries = await uow.beneficiaries.list_for_user(user.user_id)
    return [serialize_beneficiary(b) for b in beneficiaries]


@router.post("/beneficiaries", response_model=BeneficiaryEnvelope, status_code=201)
async def add_beneficiary(
    payload: BeneficiaryCreate, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)
):
    logger.info("Add beneficiary %s for user=%s", payload.account_number, user.user_id)
    now = utcnow()
    beneficiary = Beneficiary(
        beneficiary_id=uuid4(),
        user_id=user.user_id,
        is_verified=False,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    try:
        async with uow.transaction():
            await uow.beneficiaries.save(beneficiary)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Beneficiary added successfully", "beneficiary": serialize_beneficiary(beneficiary)}


@router.api_route("/beneficiaries/{beneficiary_id}", methods=["PUT", "PATCH"], response_model=BeneficiaryEnvelope)
async def update_beneficiary(
    beneficiary_id: UUID,
    payload: BeneficiaryUpdate,
    user: User = Depends(get_current_user),
    uow: SqlUnitOfWork = Depends(get_uow),
):
    try:
        async with uow.transaction():
            beneficiary = await _owned_beneficiary(uow, beneficiary_id, user)
            for field, value in payload.model_dump(exclude_unset=True).items():
                setattr(beneficiary, field, value)
            beneficiary.updated_at = utcnow()
            await uow.beneficiaries.save(beneficiary)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Beneficiary updated successfully", "beneficiary": serialize_beneficiary(beneficiary)}


@router.delete("/beneficiaries/{beneficiary_id}", response_model=MessageOut)
async def delete_beneficiary(
    beneficiary_id: UUID, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)
):
    try:
        async with uow.transaction():
            beneficiary = await _owned_beneficiary(uow, beneficiary_id, user)
            await uow.beneficiaries.delete(beneficiary)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Beneficiary deleted successfully"}

from datetime import date
from typing import List
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException

from apilabs.db.models import Card, User, utcnow
from apilabs.db.repositories import SqlUnitOfWork
from apilabs.db.serializers import serialize_card
from apilabs.logging_config import get_logger
from apilabs.services.errors import BankingError
from apilabs.services.money import generate_card_number, generate_cvv, to_money
from .deps import get_current_user, get_uow
from .schemas import CardCreate, CardEnvelope, CardOut, CardUpdate, MessageOut

logger = get_logger("apilabs.api.cards")

router = APIRouter(tags=["cards"])

CARD_VALIDITY_YEARS = 3


def _expiry_date(today: date) -> str:
    return f"{today.month:02d}/{(today.year + CARD_VALIDITY_YEARS) % 100:02d}"


async def _owned_card(uow: SqlUnitOfWork, card_id: UUID, user: User) -> Card:
    card = await uow.cards.get_owned(card_id, user.user_id)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


async def _set_status(uow: SqlUnitOfWork, card_id: UUID, user: User, status: str) -> Card:
    try:
        async with uow.transaction():
            card = await _owned_card(uow, card_id, user)
            card.status = status
            card.updated_at = utcnow()
            await uow.cards.save(card)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    logger.info("Card %s -> %s user=%s", card_id, status, user.user_id)
    return card


@router.get("/cards", response_model=List[CardOut])
async def list_cards(user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    cards = await uow.cards.list_for_user(user.user_id)
    return [serialize_card(c) for c in cards]


@router.get("/cards/{card_id}", response_model=CardOut)
async def get_card(card_id: UUID, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    return serialize_card(await _owned_card(uow, card_id, user))


@router.post("/cards", response_model=CardEnvelope, status_code=201)
async def create_card(
    payload: CardCreate, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)
):
    logger.info("Create %s card for account=%s user=%s", payload.card_type, payload.account_id, user.user_id)
    limit = to_money(payload.card_limit)
    now = utcnow()
    try:
        async with uow.transaction():
            account = await uow.accounts.get_owned(payload.account_id, user.user_id)
            if not account:
                raise HTTPException(status_code=404, detail="Account not found")
            card = Card(
                card_id=uuid4(),
                user_id=user.user_id,
                account_id=account.account_id,
                card_number=generate_card_number(),
                card_type=payload.card_type,
                cardholder_name=payload.cardholder_name,
                expiry_date=_expiry_date(now.date()),
                cvv=generate_cvv(),
                status="active",
                card_limit=limit,
                available_limit=limit,
                created_at=now,
                updated_at=now,
            )
            await uow.cards.save(card)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Card created successfully", "card": serialize_card(card)}


@router.api_route("/cards/{card_id}", methods=["PUT", "PATCH"], response_model=CardEnvelope)
async def update_card(
    card_id: UUID,
    payload: CardUpdate,
    user: User = Depends(get_current_user),
    uow: SqlUnitOfWork = Depends(get_uow),
):
    try:
        async with uow.transaction():
            card = await _owned_card(uow, card_id, user)
            if payload.cardholder_name is not None:
                card.cardholder_name = payload.cardholder_name
            if payload.card_limit is not None:
                new_limit = to_money(payload.card_limit)
                # keep what has already been drawn against the card
                used = to_money(card.card_limit) - to_money(card.available_limit)
                card.card_limit = new_limit
                card.available_limit = max(new_limit - used, to_money(0))
            card.updated_at = utcnow()
            await uow.cards.save(card)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Card updated successfully", "card": serialize_card(card)}


@router.patch("/cards/{card_id}/activate", response_model=CardEnvelope)
async def activate_card(card_id: UUID, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    card = await _set_status(uow, card_id, user, "active")
    return {"message": "Card activated successfully", "card": serialize_card(card)}


@router.patch("/cards/{card_id}/block", response_model=CardEnvelope)
async def block_card(card_id: UUID, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    card = await _set_status(uow, card_id, user, "blocked")
    return {"message": "Card blocked successfully", "card": serialize_card(card)}


@router.delete("/cards/{card_id}", response_model=MessageOut)
async def delete_card(card_id: UUID, user: User = Depends(get_current_user), uow: SqlUnitOfWork = Depends(get_uow)):
    try:
        async with uow.transaction():
            card = await _owned_card(uow, card_id, user)
            await uow.cards.delete(card)
    except BankingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Card deleted successfully"}

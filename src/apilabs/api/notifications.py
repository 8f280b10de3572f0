from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from apilabs.auth import actor_id_from_token
from apilabs.db.repositories import SqlUnitOfWork
from apilabs.logging_config import get_logger
from apilabs.services.notifications import hub, user_topic
from .deps import get_uow

logger = get_logger("apilabs.api.notifications")

router = APIRouter(tags=["notifications"])

SUBSCRIBABLE_PREFIX = "account_"


async def _resolve_user(uow: SqlUnitOfWork, token: Optional[str]) -> Optional[UUID]:
    actor_id = actor_id_from_token(token)
    if actor_id is None:
        return None
    # short transactions only; the socket outlives any single lookup
    async with uow.transaction():
        user = await uow.users.get(actor_id)
    return user.user_id if user else None


async def _owns_room(uow: SqlUnitOfWork, actor_id: UUID, room: str) -> bool:
    try:
        account_id = UUID(room[len(SUBSCRIBABLE_PREFIX):])
    except ValueError:
        return False
    async with uow.transaction():
        account = await uow.accounts.get_owned(account_id, actor_id)
    return account is not None


@router.websocket("/ws")
async def notifications_ws(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    uow: SqlUnitOfWork = Depends(get_uow),
):
    """
    Real-time ledger events.

    The connection joins the caller's ``user_<id>`` room; clients may then send
    ``{"action": "subscribe", "room": "account_<id>"}`` (or ``unsubscribe``)
    for accounts they own.
    """
    actor_id = await _resolve_user(uow, token)
    if actor_id is None:
        logger.warning("WebSocket connection rejected due to invalid token from %s", websocket.client)
        await websocket.close(code=4001)
        return

    await websocket.accept()
    own_room = user_topic(actor_id)
    hub.subscribe(websocket, own_room)
    await websocket.send_json({"event": "subscribed", "room": own_room})

    try:
        while True:
            msg = await websocket.receive_json()
            action = msg.get("action") if isinstance(msg, dict) else None
            room = msg.get("room") if isinstance(msg, dict) else None
            if action not in ("subscribe", "unsubscribe") or not isinstance(room, str):
                await websocket.send_json({"event": "error", "message": "Expected {action, room}"})
                continue
            if not room.startswith(SUBSCRIBABLE_PREFIX):
                await websocket.send_json({"event": "error", "message": f"Cannot {action} to {room}"})
                continue
            if action == "subscribe":
                if not await _owns_room(uow, actor_id, room):
                    logger.warning("Subscription to %s refused for user=%s", room, actor_id)
                    await websocket.send_json({"event": "error", "message": f"Cannot subscribe to {room}"})
                    continue
                hub.subscribe(websocket, room)
                await websocket.send_json({"event": "subscribed", "room": room})
            else:
                hub.unsubscribe(websocket, room)
                await websocket.send_json({"event": "unsubscribed", "room": room})
    except WebSocketDisconnect:
        logger.info("Client disconnected: %s", websocket.client)
    finally:
        hub.disconnect(websocket)

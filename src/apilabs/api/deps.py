from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from apilabs.auth import actor_id_from_token
from apilabs.db.deps import get_db
from apilabs.db.models import User
from apilabs.db.repositories import SqlUnitOfWork
from apilabs.logging_config import get_logger
from apilabs.services.accounts import AccountService
from apilabs.services.loans import LoanService
from apilabs.services.notifications import NotificationPublisher, hub
from apilabs.services.transfers import TransferService

logger = get_logger("apilabs.api.deps")

_bearer = HTTPBearer(auto_error=False)


def get_uow(db: AsyncSession = Depends(get_db)) -> SqlUnitOfWork:
    return SqlUnitOfWork(db)


def get_publisher() -> NotificationPublisher:
    return hub


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    uow: SqlUnitOfWork = Depends(get_uow),
) -> User:
    """
    Resolve the bearer token to a stored user.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="No token provided. Please include Bearer token in Authorization header",
        )
    actor_id = actor_id_from_token(credentials.credentials)
    if actor_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user = await uow.users.get(actor_id)
    if user is None:
        logger.warning("Token for unknown user id=%s", actor_id)
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return user


def get_account_service(
    uow: SqlUnitOfWork = Depends(get_uow), publisher: NotificationPublisher = Depends(get_publisher)
) -> AccountService:
    return AccountService(uow, publisher)


def get_transfer_service(
    uow: SqlUnitOfWork = Depends(get_uow), publisher: NotificationPublisher = Depends(get_publisher)
) -> TransferService:
    return TransferService(uow, publisher)


def get_loan_service(
    uow: SqlUnitOfWork = Depends(get_uow), publisher: NotificationPublisher = Depends(get_publisher)
) -> LoanService:
    return LoanService(uow, publisher)

"""
Bearer token verification.

Tokens are HS256 JWTs whose payload carries the user id under ``id``.
Issuing tokens is left to the platform's auth service.
"""

from typing import Optional
from uuid import UUID

import jwt

from apilabs.config import JWT_ALGORITHM, JWT_SECRET


def verify_token(token: str, secret: str = JWT_SECRET) -> Optional[dict]:
    """
    Verify JWT token
    """
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def actor_id_from_token(token: Optional[str]) -> Optional[UUID]:
    if not token:
        return None
    payload = verify_token(token)
    if not payload or "id" not in payload:
        return None
    try:
        return UUID(str(payload["id"]))
    except ValueError:
        return None

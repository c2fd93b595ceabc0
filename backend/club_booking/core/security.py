"""
Bearer token verification.

Tokens are issued by the identity service; this side only verifies the
signature and reads `sub` (member id) and `role`.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError

from club_booking.core.config import get_settings
from club_booking.core.logging import get_logger
from club_booking.models.enums import MemberRole

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def encode_token(member_id: int, role: MemberRole = MemberRole.USER, expires_minutes: int = 30) -> str:
    """Sign a token the way the identity service does (used by tests and load scripts)."""
    settings = get_settings()
    payload = {
        "sub": str(member_id),
        "role": role.value,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if not str(payload["sub"]).isdigit():
        raise InvalidTokenError("sub is not a member id")
    return payload


async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_token(credentials.credentials)
    except InvalidTokenError as e:
        logger.warning("token_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_member_id(payload: dict = Depends(get_token_payload)) -> int:
    return int(payload["sub"])


async def require_admin(payload: dict = Depends(get_token_payload)) -> int:
    if payload.get("role") != MemberRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return int(payload["sub"])

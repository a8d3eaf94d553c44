"""
Bearer token verification.

Tokens are issued by the identity provider and signed with the shared
``SECRET_KEY``; the ``sub`` claim is the caller's profile id.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, status

from drift.config import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenData:
    user_id: uuid.UUID


def _credentials_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a short-lived access token for a profile id."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> TokenData:
    """Decode a bearer token, raising 401 when it is expired or malformed."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": True, "require": ["sub", "exp"]},
            leeway=60,  # Allow 60 seconds of clock skew
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise _credentials_exception("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid JWT token: %s", str(e))
        raise _credentials_exception("Invalid token")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (TypeError, ValueError):
        logger.warning("JWT subject is not a profile id: %r", payload.get("sub"))
        raise _credentials_exception("Invalid token subject")

    return TokenData(user_id=user_id)

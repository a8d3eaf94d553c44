from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from drift.db.session import get_db
from drift.db.redis import RedisService, get_redis
from drift.core.exceptions import RateLimitedError
from drift.core.security import verify_access_token
from drift.models import Profile
from drift.services.notifications import NotificationDispatcher, notification_dispatcher
from drift.services.profiles import ensure_profile


# Security scheme
security = HTTPBearer()


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Dependency to get the caller's profile.
    Validates the bearer token; the profile row is created on first use.
    """
    token_data = verify_access_token(credentials.credentials)
    return await ensure_profile(db, token_data.user_id)


def get_redis_service() -> Optional[RedisService]:
    """Dependency to get Redis service. None when Redis is not configured."""
    if get_redis() is None:
        return None
    return RedisService()


def get_dispatcher() -> NotificationDispatcher:
    """Dependency to get the push notification dispatcher."""
    return notification_dispatcher


async def enforce_swipe_limit(
    current_profile: Profile = Depends(get_current_profile),
    redis: Optional[RedisService] = Depends(get_redis_service),
) -> Optional[int]:
    """Daily swipe allowance. Returns remaining swipes, or None when unlimited."""
    if redis is None:
        return None
    allowed, remaining = await redis.check_swipe_limit(str(current_profile.id))
    if not allowed:
        raise RateLimitedError("Daily swipe limit reached. Try again tomorrow.")
    return remaining


async def enforce_message_rate_limit(
    current_profile: Profile = Depends(get_current_profile),
    redis: Optional[RedisService] = Depends(get_redis_service),
) -> None:
    if redis is None:
        return
    allowed, _, reset_in = await redis.check_message_rate_limit(str(current_profile.id))
    if not allowed:
        raise RateLimitedError(f"Sending too fast. Try again in {reset_in} seconds.")

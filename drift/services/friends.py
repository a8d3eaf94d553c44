"""
Friend requests, friendships and blocks.

There is one Friendship row per pair of profiles, enforced by the unique
``(user_low, user_high)`` key. Its requester/addressee orientation follows the
latest action on the pair; for blocks the requester is the blocker.
"""

import logging
import uuid
from typing import List, Optional, Set

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from drift.core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)
from drift.models import Friendship, FriendStatus, Profile
from drift.models.profile import utcnow
from drift.services.matching import canonical_pair
from drift.services.notifications import (
    NotificationCategory,
    NotificationDispatcher,
    notification_dispatcher,
)


logger = logging.getLogger(__name__)


def _new_friendship(requester_id: uuid.UUID, addressee_id: uuid.UUID, status: FriendStatus) -> Friendship:
    low, high = canonical_pair(requester_id, addressee_id)
    return Friendship(
        requester_id=requester_id,
        addressee_id=addressee_id,
        user_low=low,
        user_high=high,
        status=status.value,
    )


async def get_friendship(db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> Optional[Friendship]:
    """The relationship row for a pair, whichever side started it."""
    low, high = canonical_pair(a, b)
    result = await db.execute(
        select(Friendship).where(Friendship.user_low == low, Friendship.user_high == high)
    )
    return result.scalar_one_or_none()


async def _accept_request_back(db: AsyncSession, friendship: Friendship) -> Friendship:
    friendship.status = FriendStatus.ACCEPTED.value
    await db.commit()
    await db.refresh(friendship)
    logger.info("Friend request %s accepted by a request back", friendship.id)
    return friendship


async def _require_profiles(db: AsyncSession, *profile_ids: uuid.UUID) -> dict:
    result = await db.execute(select(Profile).where(Profile.id.in_(profile_ids)))
    profiles = {p.id: p for p in result.scalars().all()}
    for profile_id in profile_ids:
        if profile_id not in profiles:
            raise NotFoundError(f"Profile {profile_id} not found.")
    return profiles


async def send_friend_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    addressee_id: uuid.UUID,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Friendship:
    """
    Ask another profile to be friends.

    A pending request in the other direction is accepted instead of creating a
    second one. A declined pair can be asked again.
    """
    if requester_id == addressee_id:
        raise InvalidArgumentError("Cannot send a friend request to yourself.")
    profiles = await _require_profiles(db, requester_id, addressee_id)

    friendship = await get_friendship(db, requester_id, addressee_id)
    if friendship is not None:
        if friendship.status == FriendStatus.BLOCKED.value:
            raise ConflictError("Cannot send a friend request to this profile.")
        if friendship.status == FriendStatus.ACCEPTED.value:
            raise ConflictError("You are already friends.")
        if friendship.status == FriendStatus.PENDING.value:
            if friendship.requester_id == requester_id:
                raise ConflictError("Friend request already sent.")
            return await _accept_request_back(db, friendship)

        # Declined earlier: reuse the row for a fresh request
        friendship.requester_id = requester_id
        friendship.addressee_id = addressee_id
        friendship.status = FriendStatus.PENDING.value
        friendship.created_at = utcnow()
    else:
        friendship = _new_friendship(requester_id, addressee_id, FriendStatus.PENDING)
        db.add(friendship)

    name = profiles[requester_id].name or "Someone"
    try:
        await db.commit()
    except IntegrityError:
        # The other side inserted the pair's row first
        await db.rollback()
        existing = await get_friendship(db, requester_id, addressee_id)
        if (
            existing is not None
            and existing.status == FriendStatus.PENDING.value
            and existing.requester_id == addressee_id
        ):
            return await _accept_request_back(db, existing)
        raise ConflictError("Friend request already sent.")
    await db.refresh(friendship)

    dispatcher = dispatcher or notification_dispatcher
    await dispatcher.notify(
        addressee_id,
        "Friend Request",
        f"{name} sent you a friend request",
        NotificationCategory.FRIEND_REQUESTS,
        {"friendship_id": str(friendship.id), "requester_id": str(requester_id), "type": "friend_request"},
    )
    return friendship


async def respond_to_friend_request(
    db: AsyncSession, request_id: uuid.UUID, actor_id: uuid.UUID, accept: bool
) -> Friendship:
    """Accept or decline a pending request. Only its addressee may answer."""
    friendship = await db.get(Friendship, request_id)
    if friendship is None:
        raise NotFoundError(f"Friend request {request_id} not found.")
    if friendship.addressee_id != actor_id:
        raise UnauthorizedError("Only the recipient can answer this friend request.")
    if friendship.status != FriendStatus.PENDING.value:
        raise ConflictError("This friend request has already been answered.")

    friendship.status = (FriendStatus.ACCEPTED if accept else FriendStatus.DECLINED).value
    await db.commit()
    await db.refresh(friendship)
    return friendship


async def block_user(db: AsyncSession, blocker_id: uuid.UUID, blocked_id: uuid.UUID) -> Friendship:
    """Block a profile. Blocked pairs never see each other in discovery."""
    if blocker_id == blocked_id:
        raise InvalidArgumentError("Cannot block yourself.")
    await _require_profiles(db, blocker_id, blocked_id)

    friendship = await get_friendship(db, blocker_id, blocked_id)
    if friendship is None:
        friendship = _new_friendship(blocker_id, blocked_id, FriendStatus.BLOCKED)
        db.add(friendship)
    else:
        friendship.requester_id = blocker_id
        friendship.addressee_id = blocked_id
    friendship.status = FriendStatus.BLOCKED.value

    await db.commit()
    await db.refresh(friendship)
    logger.info("Profile %s blocked %s", blocker_id, blocked_id)
    return friendship


async def list_friends(db: AsyncSession, profile_id: uuid.UUID) -> List[Profile]:
    result = await db.execute(
        select(Friendship).where(
            Friendship.status == FriendStatus.ACCEPTED.value,
            or_(Friendship.requester_id == profile_id, Friendship.addressee_id == profile_id),
        )
    )
    friend_ids = [
        f.addressee_id if f.requester_id == profile_id else f.requester_id
        for f in result.scalars().all()
    ]
    if not friend_ids:
        return []

    profiles = await db.execute(
        select(Profile).where(Profile.id.in_(friend_ids)).order_by(Profile.name)
    )
    return list(profiles.scalars().all())


async def list_friend_requests(db: AsyncSession, profile_id: uuid.UUID) -> List[Friendship]:
    """Pending requests waiting on this profile's answer, newest first."""
    result = await db.execute(
        select(Friendship)
        .where(
            Friendship.addressee_id == profile_id,
            Friendship.status == FriendStatus.PENDING.value,
        )
        .order_by(Friendship.created_at.desc())
    )
    return list(result.scalars().all())


async def get_blocked_ids(db: AsyncSession, profile_id: uuid.UUID) -> Set[uuid.UUID]:
    """Profiles this profile blocked or was blocked by."""
    result = await db.execute(
        select(Friendship.requester_id, Friendship.addressee_id).where(
            Friendship.status == FriendStatus.BLOCKED.value,
            or_(Friendship.requester_id == profile_id, Friendship.addressee_id == profile_id),
        )
    )
    return {
        addressee_id if requester_id == profile_id else requester_id
        for requester_id, addressee_id in result.all()
    }

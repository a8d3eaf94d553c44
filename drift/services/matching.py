"""
Swipe recording and mutual match detection.

Every swipe first upserts the pair's canonical Match row and locks it, so the
two halves of a pair can never race each other into a missed or doubled match.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from drift.core.exceptions import AlreadySwipedError, InvalidArgumentError, NotFoundError
from drift.db.upsert import insert_ignore
from drift.models import Match, Profile, Swipe, SwipeDirection
from drift.models.profile import utcnow
from drift.services.notifications import (
    NotificationCategory,
    NotificationDispatcher,
    PushNotification,
    notification_dispatcher,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwipeResult:
    created: bool
    match_formed: bool
    match_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class MatchSummary:
    match_id: uuid.UUID
    profile: Profile
    matched_at: Optional[datetime]


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> Tuple[uuid.UUID, uuid.UUID]:
    """Order two profile ids so (a, b) and (b, a) share one Match row."""
    return (a, b) if str(a) < str(b) else (b, a)


def _validate_direction(direction) -> SwipeDirection:
    try:
        return SwipeDirection(direction)
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid swipe direction '{direction}'. Use left, right or up."
        )


async def record_swipe(
    db: AsyncSession,
    swiper_id: uuid.UUID,
    swiped_id: uuid.UUID,
    direction: str,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> SwipeResult:
    """
    Record a one-time swipe and promote the pair to a match on mutual right swipes.

    Only ``right`` counts as a like. The transaction is committed before the
    two match notifications are sent.
    """
    direction = _validate_direction(direction)
    if swiper_id == swiped_id:
        raise InvalidArgumentError("Cannot swipe on yourself.")

    result = await db.execute(
        select(Profile.id, Profile.name).where(Profile.id.in_([swiper_id, swiped_id]))
    )
    names = dict(result.all())
    for profile_id in (swiper_id, swiped_id):
        if profile_id not in names:
            raise NotFoundError(f"Profile {profile_id} not found.")

    user1_id, user2_id = canonical_pair(swiper_id, swiped_id)
    await insert_ignore(
        db,
        Match,
        {"id": uuid.uuid4(), "user1_id": user1_id, "user2_id": user2_id, "is_match": False},
        ["user1_id", "user2_id"],
    )

    # Serializes concurrent swipes on this pair until commit
    result = await db.execute(
        select(Match.id)
        .where(Match.user1_id == user1_id, Match.user2_id == user2_id)
        .with_for_update()
    )
    match_id = result.scalar_one()

    swipe_id = uuid.uuid4()
    await insert_ignore(
        db,
        Swipe,
        {
            "id": swipe_id,
            "swiper_id": swiper_id,
            "swiped_id": swiped_id,
            "direction": direction.value,
            "created_at": utcnow(),
        },
        ["swiper_id", "swiped_id"],
    )
    result = await db.execute(
        select(Swipe.id).where(Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id)
    )
    if result.scalar_one() != swipe_id:
        await db.rollback()
        raise AlreadySwipedError(f"Already swiped on profile {swiped_id}.")

    match_formed = False
    if direction is SwipeDirection.RIGHT:
        now = utcnow()
        liked_column = "user1_liked_at" if swiper_id == user1_id else "user2_liked_at"
        await db.execute(
            update(Match)
            .where(Match.id == match_id)
            .values({liked_column: now})
            .execution_options(synchronize_session=False)
        )

        reverse = await db.execute(
            select(Swipe.id).where(
                Swipe.swiper_id == swiped_id,
                Swipe.swiped_id == swiper_id,
                Swipe.direction == SwipeDirection.RIGHT.value,
            )
        )
        if reverse.scalar_one_or_none() is not None:
            promoted = await db.execute(
                update(Match)
                .where(Match.id == match_id, Match.is_match.is_(False))
                .values(is_match=True, matched_at=now)
                .execution_options(synchronize_session=False)
            )
            match_formed = promoted.rowcount == 1

    await db.commit()
    logger.debug("Swipe %s %s -> %s", direction.value, swiper_id, swiped_id)

    if not match_formed:
        return SwipeResult(created=True, match_formed=False)

    logger.info("Match %s formed between %s and %s", match_id, swiper_id, swiped_id)
    dispatcher = dispatcher or notification_dispatcher
    await dispatcher.dispatch_all(
        PushNotification(
            target_user_id=target,
            title="New Match!",
            body=f"You matched with {names[other] or 'Someone'}!",
            category=NotificationCategory.NEW_MATCHES,
            payload={"match_id": str(match_id), "matched_user_id": str(other), "type": "match"},
        )
        for target, other in ((swiper_id, swiped_id), (swiped_id, swiper_id))
    )
    return SwipeResult(created=True, match_formed=True, match_id=match_id)


async def get_swiped_ids(db: AsyncSession, profile_id: uuid.UUID) -> Set[uuid.UUID]:
    """Ids of every profile this profile has swiped on, in any direction."""
    result = await db.execute(select(Swipe.swiped_id).where(Swipe.swiper_id == profile_id))
    return set(result.scalars().all())


async def list_matches(db: AsyncSession, profile_id: uuid.UUID) -> List[MatchSummary]:
    """Mutual matches for a profile, most recent first."""
    result = await db.execute(
        select(Match)
        .where(
            Match.is_match.is_(True),
            or_(Match.user1_id == profile_id, Match.user2_id == profile_id),
        )
        .order_by(Match.matched_at.desc())
    )
    matches = result.scalars().all()
    if not matches:
        return []

    other_ids = [match.other_user(profile_id) for match in matches]
    profiles = await db.execute(select(Profile).where(Profile.id.in_(other_ids)))
    by_id = {p.id: p for p in profiles.scalars().all()}

    return [
        MatchSummary(match_id=match.id, profile=by_id[other_id], matched_at=match.matched_at)
        for match, other_id in zip(matches, other_ids)
        if other_id in by_id
    ]


async def list_likes_you(db: AsyncSession, profile_id: uuid.UUID) -> List[Profile]:
    """Profiles that swiped right on this profile and are still waiting on an answer."""
    answered = select(Swipe.swiped_id).where(Swipe.swiper_id == profile_id)
    result = await db.execute(
        select(Profile)
        .join(Swipe, Swipe.swiper_id == Profile.id)
        .where(
            Swipe.swiped_id == profile_id,
            Swipe.direction == SwipeDirection.RIGHT.value,
            Swipe.swiper_id.notin_(answered),
        )
        .order_by(Swipe.created_at.desc())
    )
    return list(result.scalars().all())

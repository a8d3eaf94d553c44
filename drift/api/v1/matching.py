from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from drift.db.session import get_db
from drift.core.dependencies import get_current_profile, get_dispatcher, enforce_swipe_limit
from drift.models import Profile
from drift.schemas.match import (
    SwipeCreate,
    SwipeResponse,
    MatchWithProfile,
    MatchListResponse,
    LikesYouResponse,
)
from drift.schemas.profile import to_public_profile
from drift.services.matching import record_swipe, list_matches, list_likes_you
from drift.services.notifications import NotificationDispatcher


router = APIRouter(prefix="/matching", tags=["Matching"])


@router.post("/swipe", response_model=SwipeResponse)
async def swipe(
    swipe_data: SwipeCreate,
    current_profile: Profile = Depends(get_current_profile),
    remaining: Optional[int] = Depends(enforce_swipe_limit),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Record a swipe (left, right or up).
    A right swipe back on someone who already swiped right on you is a match.
    """
    result = await record_swipe(
        db,
        current_profile.id,
        swipe_data.swiped_id,
        swipe_data.direction,
        dispatcher=dispatcher,
    )

    return SwipeResponse(
        swiped_id=swipe_data.swiped_id,
        direction=swipe_data.direction,
        is_match=result.match_formed,
        match_id=result.match_id,
        remaining_swipes=remaining,
    )


@router.get("/matches", response_model=MatchListResponse)
async def get_matches(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Get all mutual matches for the current profile."""
    matches = await list_matches(db, current_profile.id)

    match_list = [
        MatchWithProfile(
            match_id=m.match_id,
            matched_at=m.matched_at,
            profile=to_public_profile(m.profile),
        )
        for m in matches
    ]
    return MatchListResponse(matches=match_list, total=len(match_list))


@router.get("/likes", response_model=LikesYouResponse)
async def get_likes(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Travelers who swiped right on you and are waiting for your answer."""
    profiles = await list_likes_you(db, current_profile.id)
    return LikesYouResponse(
        profiles=[to_public_profile(p) for p in profiles],
        total=len(profiles),
    )

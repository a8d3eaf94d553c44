from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from drift.schemas.profile import PublicProfile


# ==================== Swipe Schemas ====================

class SwipeCreate(BaseModel):
    """Schema for creating a swipe."""
    swiped_id: UUID
    direction: str = Field(..., pattern="^(left|right|up)$")


class SwipeResponse(BaseModel):
    """Schema for swipe response."""
    swiped_id: UUID
    direction: str
    is_match: bool = False  # True if this swipe completed a mutual match
    match_id: Optional[UUID] = None
    remaining_swipes: Optional[int] = None  # None when swipes are unlimited


# ==================== Match Schemas ====================

class MatchWithProfile(BaseModel):
    """Match with the other traveler's profile."""
    match_id: UUID
    matched_at: Optional[datetime]
    profile: PublicProfile


class MatchListResponse(BaseModel):
    """List of matches."""
    matches: List[MatchWithProfile]
    total: int


class LikesYouResponse(BaseModel):
    """Profiles waiting on the caller's swipe."""
    profiles: List[PublicProfile]
    total: int


# ==================== Discover Schemas ====================

class DiscoverProfile(PublicProfile):
    """Profile shown in the Discover deck."""
    distance_miles: float


class DiscoverResponse(BaseModel):
    """Response for discover endpoint."""
    profiles: List[DiscoverProfile]
    mode: str
    radius_miles: int

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from drift.config import settings
from drift.db.session import get_db
from drift.core.dependencies import get_current_profile
from drift.core.exceptions import InvalidArgumentError
from drift.models import Profile
from drift.schemas.match import DiscoverProfile, DiscoverResponse
from drift.schemas.profile import to_public_profile
from drift.services.discovery import MAX_LIMIT, discover_for
from drift.services.geo import GeoPoint


router = APIRouter(prefix="/discover", tags=["Discover"])


@router.get("", response_model=DiscoverResponse)
async def discover_profiles(
    mode: str = Query("dating", description="dating, friends or any"),
    limit: int = Query(settings.DISCOVERY_PAGE_SIZE, ge=1, le=MAX_LIMIT),
    lat: Optional[float] = Query(None, description="Device latitude; defaults to the saved location"),
    lon: Optional[float] = Query(None, description="Device longitude; defaults to the saved location"),
    route: bool = Query(True, description="Match against travel stops as well as locations"),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """
    Get profiles for the Discover deck, closest first.
    Excludes:
    - Own profile
    - Profiles that have not finished onboarding
    - Already swiped profiles
    - Blocked profiles (either direction)
    """
    if not current_profile.onboarding_completed:
        raise InvalidArgumentError("Complete your profile to start discovering travelers.")

    if (lat is None) != (lon is None):
        raise InvalidArgumentError("lat and lon must be given together.")
    origin = GeoPoint(lat, lon) if lat is not None else None

    candidates = await discover_for(
        db,
        current_profile,
        mode,
        limit,
        include_travel_stops=route,
        origin=origin,
        default_radius=settings.DEFAULT_DISCOVERY_RADIUS_MILES,
    )

    return DiscoverResponse(
        profiles=[
            DiscoverProfile(
                **to_public_profile(c.profile).model_dump(),
                distance_miles=round(c.distance_miles, 1),
            )
            for c in candidates
        ],
        mode=mode,
        radius_miles=current_profile.preferred_max_distance_miles
        or settings.DEFAULT_DISCOVERY_RADIUS_MILES,
    )

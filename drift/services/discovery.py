"""
Candidate filter for the Discover feed.

A candidate is in range when any of the requester's points (current location
plus travel stops with coordinates) lies within the radius of any of the
candidate's points. That cross product covers all four cases the product
cares about: location to location, my stops to their location, my location to
their stops, and stops to stops.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from drift.core.exceptions import InvalidArgumentError, NotFoundError
from drift.models import Profile, TravelStop
from drift.services.friends import get_blocked_ids
from drift.services.geo import GeoPoint, make_point, point_distance
from drift.services.matching import get_swiped_ids


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 40
MAX_LIMIT = 100
MIN_DISTANCE_MILES = 1
MAX_DISTANCE_MILES = 500
MIN_AGE = 18
MAX_AGE = 80

# looking_for values admitted by each discovery mode; None admits everyone
MODE_FILTERS: Dict[str, Optional[Tuple[str, ...]]] = {
    "dating": ("dating", "both"),
    "friends": ("friends", "both"),
    "any": None,
    "both": None,
}


@dataclass(frozen=True)
class Candidate:
    profile: Profile
    distance_miles: float


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    """Calculate age from date of birth."""
    today = today or date.today()
    return today.year - birth_date.year - (
        (today.month, today.day) < (birth_date.month, birth_date.day)
    )


def _validate_mode(looking_for_mode: str) -> Optional[Tuple[str, ...]]:
    mode = (looking_for_mode or "").strip().lower()
    if mode not in MODE_FILTERS:
        raise InvalidArgumentError(
            f"Invalid discovery mode '{looking_for_mode}'. Use dating, friends or any."
        )
    return MODE_FILTERS[mode]


def _validate_bounds(
    max_distance_miles: int,
    limit: int,
    min_age: Optional[int],
    max_age: Optional[int],
) -> None:
    if isinstance(max_distance_miles, bool) or not isinstance(max_distance_miles, int):
        raise InvalidArgumentError("max_distance_miles must be an integer.")
    if not MIN_DISTANCE_MILES <= max_distance_miles <= MAX_DISTANCE_MILES:
        raise InvalidArgumentError(
            f"max_distance_miles must be between {MIN_DISTANCE_MILES} and {MAX_DISTANCE_MILES}."
        )
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
        raise InvalidArgumentError(f"limit must be between 1 and {MAX_LIMIT}.")
    for name, value in (("min_age", min_age), ("max_age", max_age)):
        if value is not None and not MIN_AGE <= value <= MAX_AGE:
            raise InvalidArgumentError(f"{name} must be between {MIN_AGE} and {MAX_AGE}.")
    if min_age is not None and max_age is not None and min_age > max_age:
        raise InvalidArgumentError("min_age cannot be greater than max_age.")


async def _stop_points(
    db: AsyncSession, user_ids: Sequence[uuid.UUID]
) -> Dict[uuid.UUID, List[GeoPoint]]:
    """Travel stops with coordinates, grouped by owner."""
    points: Dict[uuid.UUID, List[GeoPoint]] = {}
    if not user_ids:
        return points

    result = await db.execute(
        select(TravelStop.user_id, TravelStop.latitude, TravelStop.longitude).where(
            TravelStop.user_id.in_(user_ids),
            TravelStop.latitude.isnot(None),
            TravelStop.longitude.isnot(None),
        )
    )
    for user_id, lat, lon in result.all():
        points.setdefault(user_id, []).append(GeoPoint(lat, lon))
    return points


def _closest(
    mine: Sequence[GeoPoint], theirs: Sequence[GeoPoint], radius: float
) -> Optional[float]:
    """Smallest distance within ``radius`` across both point sets, or None."""
    best = None
    for a in mine:
        for b in theirs:
            d = point_distance(a, b)
            if d <= radius and (best is None or d < best):
                best = d
    return best


async def rank_candidates(
    db: AsyncSession,
    requester_id: uuid.UUID,
    max_distance_miles: int,
    looking_for_mode: str,
    exclude_ids: Iterable[uuid.UUID] = (),
    limit: int = DEFAULT_LIMIT,
    *,
    include_travel_stops: bool = True,
    origin: Optional[GeoPoint] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
) -> List[Candidate]:
    """
    Eligible candidates for a requester, closest first.

    Ties on distance are broken by profile id so a given snapshot always yields
    the same order. With ``include_travel_stops=False`` only current locations
    are compared and both sides must have one.
    """
    allowed = _validate_mode(looking_for_mode)
    _validate_bounds(max_distance_miles, limit, min_age, max_age)

    requester = await db.get(Profile, requester_id)
    if requester is None:
        raise NotFoundError(f"Profile {requester_id} not found.")

    if origin is None:
        origin = make_point(requester.latitude, requester.longitude)

    my_points: List[GeoPoint] = [origin] if origin else []
    if include_travel_stops:
        my_points += (await _stop_points(db, [requester_id])).get(requester_id, [])

    if not my_points:
        logger.info("Profile %s has no location or travel stops; nothing to discover", requester_id)
        return []

    excluded = {requester_id, *exclude_ids}
    query = select(Profile).where(
        Profile.onboarding_completed.is_(True),
        Profile.id.notin_(excluded),
    )
    if allowed is not None:
        query = query.where(Profile.looking_for.in_(allowed))
    if not include_travel_stops:
        query = query.where(Profile.latitude.isnot(None), Profile.longitude.isnot(None))

    profiles = (await db.execute(query)).scalars().all()
    their_stops = (
        await _stop_points(db, [p.id for p in profiles]) if include_travel_stops else {}
    )

    today = date.today()
    ranked: List[Candidate] = []
    for profile in profiles:
        if profile.birthdate is not None and (min_age is not None or max_age is not None):
            age = calculate_age(profile.birthdate, today)
            if (min_age is not None and age < min_age) or (max_age is not None and age > max_age):
                continue

        current = make_point(profile.latitude, profile.longitude)
        their_points = ([current] if current else []) + their_stops.get(profile.id, [])
        distance = _closest(my_points, their_points, max_distance_miles)
        if distance is not None:
            ranked.append(Candidate(profile=profile, distance_miles=distance))

    ranked.sort(key=lambda c: (c.distance_miles, str(c.profile.id)))
    logger.debug(
        "Discovery for %s: %d of %d profiles in range", requester_id, len(ranked), len(profiles)
    )
    return ranked[:limit]


async def find_candidates(
    db: AsyncSession,
    requester_id: uuid.UUID,
    max_distance_miles: int,
    looking_for_mode: str,
    exclude_ids: Iterable[uuid.UUID] = (),
    limit: int = DEFAULT_LIMIT,
    **options,
) -> List[uuid.UUID]:
    """Profile ids eligible for the requester's Discover feed, closest first."""
    candidates = await rank_candidates(
        db, requester_id, max_distance_miles, looking_for_mode, exclude_ids, limit, **options
    )
    return [c.profile.id for c in candidates]


async def get_excluded_ids(db: AsyncSession, profile_id: uuid.UUID) -> Set[uuid.UUID]:
    """Profiles already swiped by the requester, plus blocks in either direction."""
    return await get_swiped_ids(db, profile_id) | await get_blocked_ids(db, profile_id)


async def discover_for(
    db: AsyncSession,
    requester: Profile,
    mode: str,
    limit: int,
    *,
    include_travel_stops: bool = True,
    origin: Optional[GeoPoint] = None,
    default_radius: int = 50,
) -> List[Candidate]:
    """Discover feed using the requester's saved preferences and exclusions."""
    excluded = await get_excluded_ids(db, requester.id)
    radius = requester.preferred_max_distance_miles or default_radius

    min_age = max_age = None
    if (mode or "").lower() == "dating":
        min_age, max_age = requester.preferred_min_age, requester.preferred_max_age

    return await rank_candidates(
        db,
        requester.id,
        radius,
        mode,
        excluded,
        limit,
        include_travel_stops=include_travel_stops,
        origin=origin,
        min_age=min_age,
        max_age=max_age,
    )

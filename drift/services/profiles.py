"""
Profile, preference and travel stop management.
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from drift.core.exceptions import InvalidArgumentError, NotFoundError, UnauthorizedError
from drift.db.upsert import insert_ignore
from drift.models import Profile, TravelStop, LookingFor, Lifestyle
from drift.models.profile import DEFAULT_NOTIFICATION_PREFS, utcnow
from drift.services.discovery import (
    MAX_AGE,
    MAX_DISTANCE_MILES,
    MIN_AGE,
    MIN_DISTANCE_MILES,
    calculate_age,
)
from drift.services.geo import validate_coordinates


logger = logging.getLogger(__name__)

MAX_BIO_LENGTH = 500

EDITABLE_FIELDS = {
    "name",
    "birthdate",
    "bio",
    "gender",
    "orientation",
    "avatar_url",
    "photos",
    "interests",
    "lifestyle",
    "location",
    "latitude",
    "longitude",
    "looking_for",
    "friends_only",
    "preferred_min_age",
    "preferred_max_age",
    "preferred_max_distance_miles",
}


async def get_profile(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found.")
    return profile


async def ensure_profile(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    """Get or create the profile row for an authenticated account."""
    profile = await db.get(Profile, profile_id)
    if profile is not None:
        return profile

    now = utcnow()
    await insert_ignore(
        db,
        Profile,
        {
            "id": profile_id,
            "looking_for": LookingFor.BOTH.value,
            "friends_only": False,
            "onboarding_completed": False,
            "notification_prefs": dict(DEFAULT_NOTIFICATION_PREFS),
            "photos": [],
            "interests": [],
            "created_at": now,
            "updated_at": now,
            "last_active_at": now,
        },
        ["id"],
    )
    await db.commit()
    logger.info("Created profile %s", profile_id)
    return await get_profile(db, profile_id)


def _check_pair(latitude, longitude) -> None:
    if (latitude is None) != (longitude is None):
        raise InvalidArgumentError("latitude and longitude must be set together.")
    if latitude is not None:
        validate_coordinates(latitude, longitude)


def _validate_changes(profile: Profile, changes: Dict[str, Any]) -> None:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise InvalidArgumentError(f"Unknown profile fields: {', '.join(sorted(unknown))}.")

    bio = changes.get("bio")
    if bio is not None and len(bio) > MAX_BIO_LENGTH:
        raise InvalidArgumentError(f"Bio cannot exceed {MAX_BIO_LENGTH} characters.")

    if "looking_for" in changes:
        try:
            LookingFor(changes["looking_for"])
        except ValueError:
            raise InvalidArgumentError("looking_for must be dating, friends or both.")

    if changes.get("lifestyle") is not None:
        try:
            Lifestyle(changes["lifestyle"])
        except ValueError:
            raise InvalidArgumentError(f"Unknown lifestyle '{changes['lifestyle']}'.")

    min_age = changes.get("preferred_min_age", profile.preferred_min_age)
    max_age = changes.get("preferred_max_age", profile.preferred_max_age)
    for value in (min_age, max_age):
        if value is not None and not MIN_AGE <= value <= MAX_AGE:
            raise InvalidArgumentError(f"Preferred ages must be between {MIN_AGE} and {MAX_AGE}.")
    if min_age is not None and max_age is not None and min_age > max_age:
        raise InvalidArgumentError("Preferred minimum age cannot exceed the maximum.")

    distance = changes.get("preferred_max_distance_miles")
    if distance is not None and not MIN_DISTANCE_MILES <= distance <= MAX_DISTANCE_MILES:
        raise InvalidArgumentError(
            f"Preferred distance must be between {MIN_DISTANCE_MILES} and {MAX_DISTANCE_MILES} miles."
        )

    if "latitude" in changes or "longitude" in changes:
        _check_pair(
            changes.get("latitude", profile.latitude),
            changes.get("longitude", profile.longitude),
        )

    birthdate = changes.get("birthdate")
    if birthdate is not None and birthdate > date.today():
        raise InvalidArgumentError("Birthdate cannot be in the future.")


async def update_profile(
    db: AsyncSession, profile_id: uuid.UUID, changes: Dict[str, Any]
) -> Profile:
    """Apply a validated partial update."""
    profile = await get_profile(db, profile_id)
    _validate_changes(profile, changes)

    for field, value in changes.items():
        setattr(profile, field, value)
    profile.last_active_at = utcnow()

    await db.commit()
    await db.refresh(profile)
    return profile


async def complete_onboarding(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    """Mark a profile discoverable once the required fields are present."""
    profile = await get_profile(db, profile_id)
    if not profile.name or not profile.name.strip():
        raise InvalidArgumentError("A name is required to finish onboarding.")
    if profile.birthdate is None:
        raise InvalidArgumentError("A birthdate is required to finish onboarding.")
    if calculate_age(profile.birthdate) < MIN_AGE:
        raise InvalidArgumentError(f"You must be at least {MIN_AGE} to use Drift.")

    if not profile.onboarding_completed:
        profile.onboarding_completed = True
        await db.commit()
        await db.refresh(profile)
        logger.info("Profile %s completed onboarding", profile_id)
    return profile


async def register_device_token(
    db: AsyncSession, profile_id: uuid.UUID, token: Optional[str]
) -> Profile:
    """Store the push token for the profile's device. ``None`` unregisters it."""
    profile = await get_profile(db, profile_id)
    token = (token or "").strip() or None
    profile.fcm_token = token
    await db.commit()
    await db.refresh(profile)
    return profile


async def update_notification_prefs(
    db: AsyncSession, profile_id: uuid.UUID, prefs: Dict[str, bool]
) -> Profile:
    """Merge per-category switches into the stored preferences."""
    unknown = set(prefs) - set(DEFAULT_NOTIFICATION_PREFS)
    if unknown:
        raise InvalidArgumentError(
            f"Unknown notification categories: {', '.join(sorted(unknown))}."
        )

    profile = await get_profile(db, profile_id)
    merged = dict(DEFAULT_NOTIFICATION_PREFS)
    merged.update(profile.notification_prefs or {})
    merged.update({key: bool(value) for key, value in prefs.items()})
    # Reassign so the JSON column is flagged dirty
    profile.notification_prefs = merged

    await db.commit()
    await db.refresh(profile)
    return profile


async def add_travel_stop(
    db: AsyncSession,
    profile_id: uuid.UUID,
    location: str,
    start_date: date,
    end_date: Optional[date] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> TravelStop:
    await get_profile(db, profile_id)

    location = (location or "").strip()
    if not location:
        raise InvalidArgumentError("A travel stop needs a location.")
    if end_date is not None and start_date > end_date:
        raise InvalidArgumentError("start_date cannot be after end_date.")
    _check_pair(latitude, longitude)

    stop = TravelStop(
        user_id=profile_id,
        location=location,
        latitude=latitude,
        longitude=longitude,
        start_date=start_date,
        end_date=end_date,
        created_at=utcnow(),
    )
    db.add(stop)
    await db.commit()
    await db.refresh(stop)
    return stop


async def list_travel_stops(db: AsyncSession, profile_id: uuid.UUID) -> List[TravelStop]:
    result = await db.execute(
        select(TravelStop)
        .where(TravelStop.user_id == profile_id)
        .order_by(TravelStop.start_date, TravelStop.created_at)
    )
    return list(result.scalars().all())


async def delete_travel_stop(db: AsyncSession, stop_id: uuid.UUID, actor_id: uuid.UUID) -> None:
    stop = await db.get(TravelStop, stop_id)
    if stop is None:
        raise NotFoundError(f"Travel stop {stop_id} not found.")
    if stop.user_id != actor_id:
        raise UnauthorizedError("You can only remove your own travel stops.")

    await db.delete(stop)
    await db.commit()

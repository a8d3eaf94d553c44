from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from drift.db.session import get_db
from drift.core.dependencies import get_current_profile
from drift.models import Profile
from drift.schemas.profile import (
    ProfileUpdate,
    ProfileResponse,
    DeviceTokenUpdate,
    NotificationPrefsUpdate,
    TravelStopCreate,
    TravelStopResponse,
)
from drift.services import profiles as profile_service


router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_profile: Profile = Depends(get_current_profile),
):
    """Get current traveler's profile."""
    return current_profile


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    profile_data: ProfileUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Update profile fields. Only the fields sent are changed."""
    return await profile_service.update_profile(
        db, current_profile.id, profile_data.model_dump(exclude_unset=True)
    )


@router.post("/me/complete", response_model=ProfileResponse)
async def complete_onboarding(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Finish onboarding so the profile shows up in Discover."""
    return await profile_service.complete_onboarding(db, current_profile.id)


@router.put("/me/device-token", response_model=ProfileResponse)
async def register_device_token(
    data: DeviceTokenUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await profile_service.register_device_token(db, current_profile.id, data.fcm_token)


@router.put("/me/notification-prefs", response_model=ProfileResponse)
async def update_notification_prefs(
    data: NotificationPrefsUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await profile_service.update_notification_prefs(
        db, current_profile.id, data.model_dump(exclude_none=True)
    )


# ==================== Travel Stops ====================

@router.get("/me/travel-stops", response_model=List[TravelStopResponse])
async def get_travel_stops(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """The caller's route, earliest stop first."""
    return await profile_service.list_travel_stops(db, current_profile.id)


@router.post("/me/travel-stops", response_model=TravelStopResponse, status_code=status.HTTP_201_CREATED)
async def add_travel_stop(
    data: TravelStopCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await profile_service.add_travel_stop(
        db,
        current_profile.id,
        data.location,
        data.start_date,
        end_date=data.end_date,
        latitude=data.latitude,
        longitude=data.longitude,
    )


@router.delete("/me/travel-stops/{stop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_travel_stop(
    stop_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    await profile_service.delete_travel_stop(db, stop_id, current_profile.id)

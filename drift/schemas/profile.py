from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime, date
from uuid import UUID

from drift.services.discovery import calculate_age


# ==================== Profile Schemas ====================

class ProfileUpdate(BaseModel):
    """Partial profile update. Only fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    birthdate: Optional[date] = None
    bio: Optional[str] = Field(None, max_length=500)
    gender: Optional[str] = Field(None, max_length=30)
    orientation: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[str] = Field(None, max_length=500)
    photos: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    lifestyle: Optional[str] = Field(None, pattern="^(van_life|digital_nomad|rv_life|traveler)$")

    # Location
    location: Optional[str] = Field(None, max_length=200)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    # Discovery Settings
    looking_for: Optional[str] = Field(None, pattern="^(dating|friends|both)$")
    friends_only: Optional[bool] = None
    preferred_min_age: Optional[int] = Field(None, ge=18, le=80)
    preferred_max_age: Optional[int] = Field(None, ge=18, le=80)
    preferred_max_distance_miles: Optional[int] = Field(None, ge=1, le=500)


class ProfileResponse(BaseModel):
    """The caller's own profile, including private settings."""
    id: UUID
    name: Optional[str]
    birthdate: Optional[date]
    bio: Optional[str]
    gender: Optional[str]
    orientation: Optional[str]
    avatar_url: Optional[str]
    photos: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    lifestyle: Optional[str]
    verified: Optional[bool] = False
    location: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    looking_for: str
    friends_only: bool
    preferred_min_age: Optional[int]
    preferred_max_age: Optional[int]
    preferred_max_distance_miles: Optional[int]
    notification_prefs: Optional[Dict[str, bool]] = None
    onboarding_completed: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PublicProfile(BaseModel):
    """What other travelers see on cards and in lists."""
    id: UUID
    name: Optional[str]
    age: Optional[int]
    bio: Optional[str]
    avatar_url: Optional[str]
    photos: List[str]
    interests: List[str]
    lifestyle: Optional[str]
    verified: bool
    location: Optional[str]
    looking_for: str


def to_public_profile(profile) -> PublicProfile:
    return PublicProfile(
        id=profile.id,
        name=profile.name,
        age=calculate_age(profile.birthdate) if profile.birthdate else None,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        photos=profile.photos or [],
        interests=profile.interests or [],
        lifestyle=profile.lifestyle,
        verified=bool(profile.verified),
        location=profile.location,
        looking_for=profile.looking_for,
    )


# ==================== Device & Notification Schemas ====================

class DeviceTokenUpdate(BaseModel):
    """Register (or clear with null) the device push token."""
    fcm_token: Optional[str] = Field(None, max_length=500)


class NotificationPrefsUpdate(BaseModel):
    """Per-category push switches. Omitted categories are left unchanged."""
    newMessages: Optional[bool] = None
    newMatches: Optional[bool] = None
    nearbyTravelers: Optional[bool] = None
    eventUpdates: Optional[bool] = None
    friendRequests: Optional[bool] = None


# ==================== Travel Stop Schemas ====================

class TravelStopCreate(BaseModel):
    """Schema for adding a stop to the caller's route."""
    location: str = Field(..., min_length=1, max_length=200)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    start_date: date
    end_date: Optional[date] = None


class TravelStopResponse(BaseModel):
    id: UUID
    location: str
    latitude: Optional[float]
    longitude: Optional[float]
    start_date: date
    end_date: Optional[date]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, ForeignKey, Integer, Float, Text, JSON,
    CheckConstraint, Index, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid
import enum

from drift.db.session import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LookingFor(str, enum.Enum):
    DATING = "dating"
    FRIENDS = "friends"
    BOTH = "both"


class Lifestyle(str, enum.Enum):
    VAN_LIFE = "van_life"
    DIGITAL_NOMAD = "digital_nomad"
    RV_LIFE = "rv_life"
    TRAVELER = "traveler"


DEFAULT_NOTIFICATION_PREFS = {
    "newMessages": True,
    "newMatches": True,
    "nearbyTravelers": True,
    "eventUpdates": True,
    "friendRequests": True,
}


class Profile(Base):
    """Traveler profile. The id is the authenticated account id."""

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Basic Info
    name = Column(String(100), nullable=True)
    birthdate = Column(Date, nullable=True)
    bio = Column(Text, nullable=True)
    gender = Column(String(30), nullable=True)
    # Dating preference (who they want to see), separate from gender
    orientation = Column(String(30), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    photos = Column(JSONType, default=list)
    interests = Column(JSONType, default=list)
    lifestyle = Column(String(20), nullable=True)
    verified = Column(Boolean, default=False)

    # Location
    location = Column(String(200), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Discovery Settings
    looking_for = Column(String(10), nullable=False, default=LookingFor.BOTH.value)
    friends_only = Column(Boolean, nullable=False, default=False)
    preferred_min_age = Column(Integer, nullable=True)
    preferred_max_age = Column(Integer, nullable=True)
    preferred_max_distance_miles = Column(Integer, nullable=True)

    # Push notifications
    fcm_token = Column(String(500), nullable=True)
    notification_prefs = Column(JSONType, default=lambda: dict(DEFAULT_NOTIFICATION_PREFS))

    # Profile Status
    onboarding_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)
    last_active_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    # Relationships
    travel_stops = relationship(
        "TravelStop",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="TravelStop.start_date",
    )

    __table_args__ = (
        CheckConstraint("looking_for IN ('dating', 'friends', 'both')", name="ck_profiles_looking_for"),
        CheckConstraint(
            "preferred_min_age IS NULL OR (preferred_min_age >= 18 AND preferred_min_age <= 80)",
            name="ck_profiles_min_age",
        ),
        CheckConstraint(
            "preferred_max_age IS NULL OR (preferred_max_age >= 18 AND preferred_max_age <= 80)",
            name="ck_profiles_max_age",
        ),
        CheckConstraint(
            "preferred_max_distance_miles IS NULL OR "
            "(preferred_max_distance_miles >= 1 AND preferred_max_distance_miles <= 500)",
            name="ck_profiles_max_distance",
        ),
        Index("idx_profiles_looking_for", "looking_for"),
        Index("idx_profiles_onboarding", "onboarding_completed"),
    )

    def __repr__(self):
        return f"<Profile {self.id}>"


class TravelStop(Base):
    """A planned or current waypoint on a traveler's route."""

    __tablename__ = "travel_stops"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    location = Column(String(200), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    profile = relationship("Profile", back_populates="travel_stops")

    __table_args__ = (
        CheckConstraint("end_date IS NULL OR start_date <= end_date", name="ck_travel_stops_dates"),
        Index("idx_travel_stops_dates", "start_date", "end_date"),
    )

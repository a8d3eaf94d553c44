from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index, Uuid,
)
from sqlalchemy.sql import func
import uuid
import enum

from drift.db.session import Base
from drift.models.profile import utcnow


class SwipeDirection(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"


class Swipe(Base):
    """One-time directional swipe from one profile to another."""

    __tablename__ = "swipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    swiped_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    direction = Column(String(10), nullable=False)  # left, right, up
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("swiper_id", "swiped_id", name="unique_swipe"),
        CheckConstraint("swiper_id != swiped_id", name="ck_swipes_no_self_swipe"),
        CheckConstraint("direction IN ('left', 'right', 'up')", name="ck_swipes_direction"),
    )


class Match(Base):
    """
    Dating relationship between two profiles, keyed by the canonical pair.

    ``user1_id`` always sorts before ``user2_id`` so (A, B) and (B, A) share a row.
    """

    __tablename__ = "matches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user1_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    user2_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    user1_liked_at = Column(DateTime(timezone=True), nullable=True)
    user2_liked_at = Column(DateTime(timezone=True), nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=True)
    is_match = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="unique_match_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_matches_ordered_pair"),
        Index("idx_matches_user1", "user1_id"),
        Index("idx_matches_user2", "user2_id"),
        Index("idx_matches_is_match", "is_match"),
    )

    def other_user(self, profile_id):
        return self.user2_id if self.user1_id == profile_id else self.user1_id

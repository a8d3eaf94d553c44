from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.sql import func
import uuid
import enum

from drift.db.session import Base
from drift.models.profile import utcnow


class FriendStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    BLOCKED = "blocked"


class Friendship(Base):
    """
    Friend request or connection. For blocks, the requester is the blocker.

    ``user_low``/``user_high`` hold the pair in sorted order so a pair has one
    row whichever side asked first.
    """

    __tablename__ = "friendships"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    requester_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    addressee_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_low = Column(Uuid, nullable=False)
    user_high = Column(Uuid, nullable=False)
    status = Column(String(10), nullable=False, default=FriendStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", name="unique_friend_pair"),
        CheckConstraint("user_low < user_high", name="ck_friendships_ordered_pair"),
        CheckConstraint("requester_id != addressee_id", name="ck_friendships_no_self"),
    )

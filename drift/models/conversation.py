from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, Index, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum

from drift.db.session import Base
from drift.models.profile import JSONType, utcnow


class ConversationType(str, enum.Enum):
    DATING = "dating"
    FRIENDS = "friends"
    ACTIVITY = "activity"


DIRECT_CONVERSATION_TYPES = (ConversationType.DATING.value, ConversationType.FRIENDS.value)


class Conversation(Base):
    """Typed container for messages between participants."""

    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(10), nullable=False, index=True)
    activity_id = Column(Uuid, nullable=True)
    # "<low id>:<high id>" for direct conversations; NULL for group chats
    direct_key = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("type", "direct_key", name="unique_direct_conversation"),
    )


class ConversationParticipant(Base):
    """Membership of a profile in a conversation, with that member's own view state."""

    __tablename__ = "conversation_participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    last_read_at = Column(DateTime(timezone=True), nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    # hidden_at: moved to the "Hidden" list (reversible); left_at: removed from the list
    hidden_at = Column(DateTime(timezone=True), nullable=True)
    left_at = Column(DateTime(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="unique_participant"),
    )


class Message(Base):
    """Chat message. Soft deleted through ``deleted_at``."""

    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    images = Column(JSONType, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
    )

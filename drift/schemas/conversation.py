from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from drift.schemas.profile import PublicProfile


# ==================== Conversation Schemas ====================

class ConversationCreate(BaseModel):
    """Open (or reopen) the direct conversation with another traveler."""
    other_user_id: UUID
    type: str = Field("dating", pattern="^(dating|friends)$")


class ConversationResponse(BaseModel):
    id: UUID
    type: str


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    images: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationSummaryResponse(BaseModel):
    """Row in the Messages list."""
    id: UUID
    type: str
    participants: List[PublicProfile]
    last_message: Optional[MessageResponse]
    unread_count: int
    is_muted: bool
    is_hidden: bool
    updated_at: Optional[datetime]


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummaryResponse]
    total: int


class ParticipantStateResponse(BaseModel):
    """The caller's own view state for a conversation."""
    conversation_id: UUID
    is_muted: bool
    hidden_at: Optional[datetime]
    last_read_at: Optional[datetime]
    left_at: Optional[datetime]

    class Config:
        from_attributes = True


# ==================== Message Schemas ====================

class MessageCreate(BaseModel):
    """Text, images, or both."""
    content: str = Field("", max_length=5000)
    images: List[str] = Field(default_factory=list, max_length=10)


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]
    total: int


class MuteRequest(BaseModel):
    muted: bool = True

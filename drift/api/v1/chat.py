from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
from uuid import UUID

from drift.db.session import get_db
from drift.core.dependencies import get_current_profile, get_dispatcher, enforce_message_rate_limit
from drift.models import Message, Profile
from drift.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationSummaryResponse,
    ConversationListResponse,
    MessageCreate,
    MessageResponse,
    MessageListResponse,
    MuteRequest,
    ParticipantStateResponse,
)
from drift.schemas.profile import to_public_profile
from drift.services import conversations as chat
from drift.services.notifications import NotificationDispatcher


router = APIRouter(tags=["Chat"])


# ==================== Conversations ====================

@router.post("/conversations", response_model=ConversationResponse)
async def open_conversation(
    data: ConversationCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Get the direct conversation with another traveler, creating it if needed."""
    conversation_id = await chat.get_or_create_conversation(
        db, data.type, current_profile.id, data.other_user_id
    )
    return ConversationResponse(id=conversation_id, type=data.type)


@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    include_hidden: bool = Query(False),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Messages list, most recently active first."""
    summaries = await chat.list_conversations(db, current_profile.id, include_hidden=include_hidden)

    conversations = [
        ConversationSummaryResponse(
            id=s.conversation.id,
            type=s.conversation.type,
            participants=[to_public_profile(p) for p in s.others],
            last_message=MessageResponse.model_validate(s.last_message) if s.last_message else None,
            unread_count=s.unread_count,
            is_muted=s.participant.is_muted,
            is_hidden=s.participant.hidden_at is not None,
            updated_at=s.conversation.updated_at,
        )
        for s in summaries
    ]
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    before: Optional[datetime] = Query(None, description="Return messages older than this"),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    messages = await chat.list_messages(db, conversation_id, current_profile.id, limit=limit, before=before)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_message_rate_limit)],
)
async def post_message(
    conversation_id: UUID,
    data: MessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a message. Other participants get a push notification."""
    message_id = await chat.send_message(
        db,
        conversation_id,
        current_profile.id,
        data.content,
        data.images,
        dispatcher=dispatcher,
    )
    message = await db.get(Message, message_id)
    return message


# ==================== Participant State ====================

@router.post("/conversations/{conversation_id}/read", response_model=ParticipantStateResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await chat.mark_read(db, conversation_id, current_profile.id)


@router.post("/conversations/{conversation_id}/mute", response_model=ParticipantStateResponse)
async def mute_conversation(
    conversation_id: UUID,
    data: MuteRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Mute (or unmute) push notifications for one conversation."""
    return await chat.set_muted(db, conversation_id, current_profile.id, data.muted)


@router.post("/conversations/{conversation_id}/hide", response_model=ParticipantStateResponse)
async def hide_conversation(
    conversation_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await chat.hide_conversation(db, conversation_id, current_profile.id)


@router.post("/conversations/{conversation_id}/unhide", response_model=ParticipantStateResponse)
async def unhide_conversation(
    conversation_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await chat.unhide_conversation(db, conversation_id, current_profile.id)


@router.post("/conversations/{conversation_id}/leave", response_model=ParticipantStateResponse)
async def leave_conversation(
    conversation_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await chat.leave_conversation(db, conversation_id, current_profile.id)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Delete one of your own messages."""
    await chat.delete_message(db, message_id, current_profile.id)

"""
Conversation resolution, messages, and per-participant conversation state.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, update, exists, func
from sqlalchemy.ext.asyncio import AsyncSession

from drift.core.exceptions import InvalidArgumentError, NotFoundError, UnauthorizedError
from drift.db.upsert import insert_ignore
from drift.models import Conversation, ConversationParticipant, ConversationType, Message, Profile
from drift.models.conversation import DIRECT_CONVERSATION_TYPES
from drift.models.profile import utcnow
from drift.services.notifications import (
    NotificationCategory,
    NotificationDispatcher,
    PushNotification,
    notification_dispatcher,
    preview,
)


logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000
MAX_MESSAGE_IMAGES = 10
MAX_PAGE_SIZE = 100


@dataclass
class ConversationSummary:
    conversation: Conversation
    participant: ConversationParticipant
    others: List[Profile] = field(default_factory=list)
    last_message: Optional[Message] = None
    unread_count: int = 0


def direct_key(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


def _validate_direct_type(conversation_type) -> str:
    try:
        conversation_type = ConversationType(conversation_type).value
    except ValueError:
        raise InvalidArgumentError(f"Invalid conversation type '{conversation_type}'.")
    if conversation_type not in DIRECT_CONVERSATION_TYPES:
        raise InvalidArgumentError("Activity conversations are created with their activity.")
    return conversation_type


async def _find_direct(
    db: AsyncSession, conversation_type: str, user_a: uuid.UUID, user_b: uuid.UUID
) -> Optional[uuid.UUID]:
    def member(user_id):
        return exists().where(
            ConversationParticipant.conversation_id == Conversation.id,
            ConversationParticipant.user_id == user_id,
        )

    result = await db.execute(
        select(Conversation.id)
        .where(Conversation.type == conversation_type, member(user_a), member(user_b))
        .order_by(Conversation.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_or_create_conversation(
    db: AsyncSession,
    conversation_type: str,
    user_a: uuid.UUID,
    user_b: uuid.UUID,
) -> uuid.UUID:
    """
    Return the single direct conversation of this type between two profiles,
    creating it on first use. Argument order does not matter for the result;
    ``user_a`` is the caller and rejoins the conversation if they had left it.
    """
    conversation_type = _validate_direct_type(conversation_type)
    if user_a == user_b:
        raise InvalidArgumentError("A conversation needs two different profiles.")

    result = await db.execute(select(Profile.id).where(Profile.id.in_([user_a, user_b])))
    found = set(result.scalars().all())
    for profile_id in (user_a, user_b):
        if profile_id not in found:
            raise NotFoundError(f"Profile {profile_id} not found.")

    existing = await _find_direct(db, conversation_type, user_a, user_b)
    if existing is not None:
        # Reopening a conversation you left puts it back in your own list only
        rejoined = await db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == existing,
                ConversationParticipant.user_id == user_a,
                ConversationParticipant.left_at.isnot(None),
            )
            .values(left_at=None)
            .execution_options(synchronize_session=False)
        )
        if rejoined.rowcount:
            await db.commit()
        return existing

    key = direct_key(user_a, user_b)
    new_id = uuid.uuid4()
    now = utcnow()
    await insert_ignore(
        db,
        Conversation,
        {"id": new_id, "type": conversation_type, "direct_key": key, "created_at": now, "updated_at": now},
        ["type", "direct_key"],
    )
    result = await db.execute(
        select(Conversation.id).where(
            Conversation.type == conversation_type, Conversation.direct_key == key
        )
    )
    conversation_id = result.scalar_one()

    for user_id in (user_a, user_b):
        await insert_ignore(
            db,
            ConversationParticipant,
            {"id": uuid.uuid4(), "conversation_id": conversation_id, "user_id": user_id, "joined_at": now},
            ["conversation_id", "user_id"],
        )
    await db.commit()

    if conversation_id == new_id:
        logger.info("Created %s conversation %s for %s", conversation_type, conversation_id, key)
    return conversation_id


async def _get_participant(
    db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID
) -> ConversationParticipant:
    """Membership row, or NotFound/Unauthorized. Hidden or left members keep access."""
    conversation = await db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"Conversation {conversation_id} not found.")

    result = await db.execute(
        select(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise UnauthorizedError("Not a participant in this conversation.")
    return participant


async def send_message(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    images: Sequence[str] = (),
    dispatcher: Optional[NotificationDispatcher] = None,
) -> uuid.UUID:
    """Append a message, then notify the other participants once it is committed."""
    await _get_participant(db, conversation_id, sender_id)

    content = (content or "").strip()
    images = list(images or [])
    if not content and not images:
        raise InvalidArgumentError("Message cannot be empty.")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise InvalidArgumentError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters.")
    if len(images) > MAX_MESSAGE_IMAGES:
        raise InvalidArgumentError(f"A message can carry at most {MAX_MESSAGE_IMAGES} images.")

    now = utcnow()
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        images=images,
        created_at=now,
        updated_at=now,
    )
    db.add(message)
    await db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    message_id = message.id

    sender = await db.get(Profile, sender_id)
    result = await db.execute(
        select(ConversationParticipant.user_id).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id != sender_id,
        )
    )
    recipients = list(result.scalars().all())
    await db.commit()

    title = (sender.name if sender else None) or "Someone"
    body = preview(content) if content else "Sent a photo"
    dispatcher = dispatcher or notification_dispatcher
    await dispatcher.dispatch_all(
        PushNotification(
            target_user_id=recipient,
            title=title,
            body=body,
            category=NotificationCategory.NEW_MESSAGES,
            payload={
                "conversation_id": str(conversation_id),
                "message_id": str(message_id),
                "type": "message",
            },
        )
        for recipient in recipients
    )
    return message_id


async def _unread_count(
    db: AsyncSession, conversation_id: uuid.UUID, reader_id: uuid.UUID, last_read_at: Optional[datetime]
) -> int:
    query = select(func.count(Message.id)).where(
        Message.conversation_id == conversation_id,
        Message.sender_id != reader_id,
        Message.deleted_at.is_(None),
    )
    if last_read_at is not None:
        query = query.where(Message.created_at > last_read_at)
    return (await db.execute(query)).scalar_one()


async def list_conversations(
    db: AsyncSession, profile_id: uuid.UUID, include_hidden: bool = False
) -> List[ConversationSummary]:
    """Conversations the profile has not left, most recently active first."""
    query = (
        select(Conversation, ConversationParticipant)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(
            ConversationParticipant.user_id == profile_id,
            ConversationParticipant.left_at.is_(None),
        )
        .order_by(Conversation.updated_at.desc())
    )
    if not include_hidden:
        query = query.where(ConversationParticipant.hidden_at.is_(None))

    rows = (await db.execute(query)).all()
    if not rows:
        return []

    conversation_ids = [conversation.id for conversation, _ in rows]
    result = await db.execute(
        select(ConversationParticipant.conversation_id, Profile)
        .join(Profile, Profile.id == ConversationParticipant.user_id)
        .where(
            ConversationParticipant.conversation_id.in_(conversation_ids),
            ConversationParticipant.user_id != profile_id,
        )
    )
    others: Dict[uuid.UUID, List[Profile]] = {}
    for conversation_id, profile in result.all():
        others.setdefault(conversation_id, []).append(profile)

    summaries = []
    for conversation, participant in rows:
        last = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id, Message.deleted_at.is_(None))
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        summaries.append(
            ConversationSummary(
                conversation=conversation,
                participant=participant,
                others=others.get(conversation.id, []),
                last_message=last.scalar_one_or_none(),
                unread_count=await _unread_count(
                    db, conversation.id, profile_id, participant.last_read_at
                ),
            )
        )
    return summaries


async def list_messages(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    reader_id: uuid.UUID,
    limit: int = 50,
    before: Optional[datetime] = None,
) -> List[Message]:
    """A page of messages in chronological order, ending before ``before`` if given."""
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidArgumentError(f"limit must be between 1 and {MAX_PAGE_SIZE}.")
    await _get_participant(db, conversation_id, reader_id)

    query = select(Message).where(
        Message.conversation_id == conversation_id,
        Message.deleted_at.is_(None),
    )
    if before is not None:
        query = query.where(Message.created_at < before)
    result = await db.execute(query.order_by(Message.created_at.desc()).limit(limit))
    return list(reversed(result.scalars().all()))


async def _update_participant(
    db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID, **values
) -> ConversationParticipant:
    participant = await _get_participant(db, conversation_id, user_id)
    for key, value in values.items():
        setattr(participant, key, value)
    await db.commit()
    return participant


async def mark_read(db: AsyncSession, conversation_id: uuid.UUID, reader_id: uuid.UUID):
    return await _update_participant(db, conversation_id, reader_id, last_read_at=utcnow())


async def set_muted(db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID, muted: bool):
    return await _update_participant(db, conversation_id, user_id, is_muted=muted)


async def hide_conversation(db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID):
    return await _update_participant(db, conversation_id, user_id, hidden_at=utcnow())


async def unhide_conversation(db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID):
    return await _update_participant(db, conversation_id, user_id, hidden_at=None)


async def leave_conversation(db: AsyncSession, conversation_id: uuid.UUID, user_id: uuid.UUID):
    participant = await _update_participant(db, conversation_id, user_id, left_at=utcnow())
    logger.info("Profile %s left conversation %s", user_id, conversation_id)
    return participant


async def delete_message(db: AsyncSession, message_id: uuid.UUID, actor_id: uuid.UUID) -> None:
    """Soft delete a message. Only its author may do this."""
    message = await db.get(Message, message_id)
    if message is None or message.deleted_at is not None:
        raise NotFoundError(f"Message {message_id} not found.")
    if message.sender_id != actor_id:
        raise UnauthorizedError("Only the author can delete a message.")

    message.deleted_at = utcnow()
    await db.commit()

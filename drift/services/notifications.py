"""
Push notification dispatch.

Services call the dispatcher only after their own transaction has committed.
Delivery is best effort: every failure is logged here and never reaches the
write that triggered it.
"""

import asyncio
import logging
import uuid
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from drift.core.exceptions import TransientDependencyFailure
from drift.core.firebase import firebase_service
from drift.db.session import async_session_maker
from drift.models import Profile, ConversationParticipant


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

Sender = Callable[[str, str, str, Dict[str, str]], Any]


class NotificationCategory(str, enum.Enum):
    NEW_MESSAGES = "newMessages"
    NEW_MATCHES = "newMatches"
    NEARBY_TRAVELERS = "nearbyTravelers"
    EVENT_UPDATES = "eventUpdates"
    FRIEND_REQUESTS = "friendRequests"


@dataclass
class PushNotification:
    target_user_id: uuid.UUID
    title: str
    body: str
    category: NotificationCategory
    payload: Dict[str, str] = field(default_factory=dict)


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Truncate message text for a notification body."""
    text = text or ""
    if len(text) > length:
        return text[:length] + "..."
    return text


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        sender: Optional[Sender] = None,
    ) -> None:
        self.session_factory = session_factory or async_session_maker
        self._sender = sender

    def set_sender_for_tests(self, sender: Sender) -> None:
        self._sender = sender

    @property
    def enabled(self) -> bool:
        return self._sender is not None or firebase_service.is_configured

    async def notify(
        self,
        target_user_id: uuid.UUID,
        title: str,
        body: str,
        category: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Deliver one notification. Returns True if it was handed to the push service."""
        if not self.enabled:
            logger.debug("Push delivery disabled; dropping %s for %s", category, target_user_id)
            return False

        try:
            return await self._deliver(target_user_id, title, body, category, payload or {})
        except Exception as e:
            failure = TransientDependencyFailure(str(e) or e.__class__.__name__)
            logger.warning(
                "Push notification %s to %s failed: %s", category, target_user_id, failure.message
            )
            return False

    async def dispatch_all(self, notifications: Iterable[PushNotification]) -> int:
        delivered = 0
        for note in notifications:
            if await self.notify(note.target_user_id, note.title, note.body, note.category, note.payload):
                delivered += 1
        return delivered

    async def _deliver(
        self,
        target_user_id: uuid.UUID,
        title: str,
        body: str,
        category: str,
        payload: Dict[str, Any],
    ) -> bool:
        category = NotificationCategory(category)

        async with self.session_factory() as session:
            profile = await session.get(Profile, target_user_id)
            if profile is None:
                logger.debug("No profile %s; skipping %s", target_user_id, category.value)
                return False
            if not profile.fcm_token:
                logger.debug("Profile %s has no device token registered", target_user_id)
                return False

            prefs = profile.notification_prefs or {}
            # Missing keys default to enabled
            if prefs.get(category.value) is False:
                logger.debug("Category %s disabled by %s", category.value, target_user_id)
                return False

            conversation_id = payload.get("conversation_id")
            if (
                category is NotificationCategory.NEW_MESSAGES
                and conversation_id
                and await self._is_muted(session, conversation_id, target_user_id)
            ):
                logger.debug("Conversation %s muted by %s", conversation_id, target_user_id)
                return False

            fcm_token = profile.fcm_token

        data = {key: str(value) for key, value in payload.items()}
        sender = self._sender or firebase_service.send_push
        await asyncio.to_thread(sender, fcm_token, title, body, data)
        logger.info("Sent %s notification to %s", category.value, target_user_id)
        return True

    @staticmethod
    async def _is_muted(session: AsyncSession, conversation_id: Any, user_id: uuid.UUID) -> bool:
        result = await session.execute(
            select(ConversationParticipant.is_muted).where(
                ConversationParticipant.conversation_id == uuid.UUID(str(conversation_id)),
                ConversationParticipant.user_id == user_id,
            )
        )
        return bool(result.scalar_one_or_none())


# Shared instance used by the API layer
notification_dispatcher = NotificationDispatcher()

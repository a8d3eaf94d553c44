# Export all models for easy importing
from drift.models.profile import Profile, TravelStop, LookingFor, Lifestyle
from drift.models.match import Swipe, Match, SwipeDirection
from drift.models.friend import Friendship, FriendStatus
from drift.models.conversation import (
    Conversation,
    ConversationParticipant,
    ConversationType,
    Message,
)

__all__ = [
    "Profile",
    "TravelStop",
    "LookingFor",
    "Lifestyle",
    "Swipe",
    "Match",
    "SwipeDirection",
    "Friendship",
    "FriendStatus",
    "Conversation",
    "ConversationParticipant",
    "ConversationType",
    "Message",
]

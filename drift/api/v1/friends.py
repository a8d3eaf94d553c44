from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from drift.db.session import get_db
from drift.core.dependencies import get_current_profile, get_dispatcher
from drift.models import Profile
from drift.schemas.friend import (
    FriendRequestCreate,
    FriendRequestRespond,
    BlockRequest,
    FriendshipResponse,
    FriendListResponse,
    FriendRequestListResponse,
)
from drift.schemas.profile import to_public_profile
from drift.services import friends as friend_service
from drift.services.notifications import NotificationDispatcher


router = APIRouter(prefix="/friends", tags=["Friends"])


@router.get("", response_model=FriendListResponse)
async def get_friends(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    friends = await friend_service.list_friends(db, current_profile.id)
    return FriendListResponse(
        friends=[to_public_profile(p) for p in friends],
        total=len(friends),
    )


@router.get("/requests", response_model=FriendRequestListResponse)
async def get_friend_requests(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Incoming requests waiting for an answer."""
    requests = await friend_service.list_friend_requests(db, current_profile.id)
    return FriendRequestListResponse(requests=requests, total=len(requests))


@router.post("/requests", response_model=FriendshipResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    data: FriendRequestCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a friend request. A pending request from them is accepted instead."""
    return await friend_service.send_friend_request(
        db, current_profile.id, data.addressee_id, dispatcher=dispatcher
    )


@router.post("/requests/{request_id}/respond", response_model=FriendshipResponse)
async def respond_to_friend_request(
    request_id: UUID,
    data: FriendRequestRespond,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    return await friend_service.respond_to_friend_request(
        db, request_id, current_profile.id, data.accept
    )


@router.post("/block", response_model=FriendshipResponse)
async def block_user(
    data: BlockRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    """Block a traveler. Neither of you will see the other in Discover."""
    return await friend_service.block_user(db, current_profile.id, data.user_id)

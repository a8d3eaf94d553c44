from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from drift.schemas.profile import PublicProfile


class FriendRequestCreate(BaseModel):
    addressee_id: UUID


class FriendRequestRespond(BaseModel):
    accept: bool


class BlockRequest(BaseModel):
    user_id: UUID


class FriendshipResponse(BaseModel):
    """Friend request or connection between two travelers."""
    id: UUID
    requester_id: UUID
    addressee_id: UUID
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class FriendListResponse(BaseModel):
    friends: List[PublicProfile]
    total: int


class FriendRequestListResponse(BaseModel):
    requests: List[FriendshipResponse]
    total: int

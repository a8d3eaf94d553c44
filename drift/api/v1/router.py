from fastapi import APIRouter

from drift.api.v1.profiles import router as profiles_router
from drift.api.v1.discovery import router as discovery_router
from drift.api.v1.matching import router as matching_router
from drift.api.v1.chat import router as chat_router
from drift.api.v1.friends import router as friends_router

api_router = APIRouter()

# Include all route modules
api_router.include_router(profiles_router)
api_router.include_router(discovery_router)
api_router.include_router(matching_router)
api_router.include_router(chat_router)
api_router.include_router(friends_router)

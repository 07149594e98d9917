from fastapi import APIRouter

from app.api.v1.endpoints import launchpad

# Create API router
api_router = APIRouter()

api_router.include_router(launchpad.router, prefix="/launchpad", tags=["Launchpad"])

__all__ = ["api_router"]

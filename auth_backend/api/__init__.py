"""
REST API routes for Auth Backend.
"""

from fastapi import APIRouter

from auth_backend.api.auth import router as auth_router
from auth_backend.api.otp import router as otp_router
from auth_backend.api.user import router as user_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(otp_router, prefix="/otp", tags=["otp"])
api_router.include_router(user_router, prefix="/user", tags=["user"])

__all__ = ["api_router"]

"""
One-time code API routes for Auth Backend.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import Field, field_validator

from auth_backend.api.auth import get_auth_flow
from auth_backend.api.schemas import CamelModel, PublicProfile, check_email
from auth_backend.auth.flow import AuthFlow
from auth_backend.config import Settings, get_settings

router = APIRouter()


# Request/Response schemas
class OtpSendRequest(CamelModel):
    """Request schema for sending a code."""

    email: str

    normalize_email = field_validator("email")(check_email)


class OtpVerifyRequest(CamelModel):
    """Request schema for verifying a code, optionally completing a signup."""

    email: str
    otp: str = Field(..., min_length=1, max_length=16)
    username: str | None = None

    normalize_email = field_validator("email")(check_email)

    @field_validator("otp")
    @classmethod
    def strip_code(cls, value: str) -> str:
        return value.strip()

    @field_validator("username")
    @classmethod
    def blank_username_to_none(cls, value: str | None) -> str | None:
        # Format rules apply only when a new account is created
        if value is None or not value.strip():
            return None
        return value.strip()


class OtpSendResponse(CamelModel):
    message: str
    is_new_user: bool


class OtpVerifyResponse(CamelModel):
    message: str
    needs_username: bool
    user: PublicProfile | None = None
    token: str | None = None
    expires_in: str | None = None
    email: str | None = None


# Routes
@router.post("/send", response_model=OtpSendResponse)
async def send_otp(
    request: OtpSendRequest,
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
) -> OtpSendResponse:
    """
    Send a one-time code to the given email.
    Reports whether the address belongs to a new user.
    """
    result = await flow.send_otp(request.email)
    return OtpSendResponse(message="OTP sent to your email", is_new_user=result.is_new_user)


@router.post("/verify", response_model=OtpVerifyResponse, response_model_exclude_none=True)
async def verify_otp(
    request: OtpVerifyRequest,
    response: Response,
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OtpVerifyResponse:
    """
    Verify a code.
    Logs in existing users, asks new users for a username, and creates the
    account once a username is supplied.
    """
    result = await flow.verify_otp(request.email, request.otp, request.username)

    if result.needs_username:
        return OtpVerifyResponse(
            message="OTP verified",
            email=result.email,
            needs_username=True,
        )

    if result.created:
        response.status_code = status.HTTP_201_CREATED
        message = "User registered successfully"
    else:
        message = "Login successful"

    return OtpVerifyResponse(
        message=message,
        user=PublicProfile.from_account(result.account),
        token=result.token,
        expires_in=settings.jwt_expires_in,
        needs_username=False,
    )

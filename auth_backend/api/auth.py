"""
Authentication API routes for Auth Backend.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.api.schemas import (
    CamelModel,
    MessageResponse,
    PublicProfile,
    UserResponse,
    check_email,
    check_new_password,
    check_username,
)
from auth_backend.auth.authenticator import AuthenticatedSession, SessionAuthenticator
from auth_backend.auth.flow import AuthFlow
from auth_backend.auth.tokens import TokenService
from auth_backend.config import Settings, get_settings
from auth_backend.database import get_db
from auth_backend.models.account import Account
from auth_backend.notifications import NotificationSender, get_notification_sender
from auth_backend.store.accounts import AccountStore
from auth_backend.store.revocations import RevocationStore

router = APIRouter()
security = HTTPBearer(auto_error=False)


# Request/Response schemas
class SignupRequest(CamelModel):
    """Request schema for password signup."""

    email: str
    username: str
    password: str
    confirm_password: str

    normalize_email = field_validator("email")(check_email)
    normalize_username = field_validator("username")(check_username)
    password_policy = field_validator("password")(check_new_password)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Password confirmation does not match password")
        return value


class LoginRequest(CamelModel):
    """Request schema for password login."""

    email: str
    password: str = Field(..., min_length=1)

    normalize_email = field_validator("email")(check_email)


class ChangePasswordRequest(CamelModel):
    """Request schema for password change."""

    current_password: str = Field(..., min_length=1)
    new_password: str
    confirm_new_password: str

    password_policy = field_validator("new_password")(check_new_password)

    @field_validator("confirm_new_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        new_password = info.data.get("new_password")
        if new_password is not None and value != new_password:
            raise ValueError("Password confirmation does not match new password")
        return value


class AuthResponse(CamelModel):
    """Response schema for signup and login success."""

    message: str
    user: PublicProfile
    token: str
    expires_in: str


class TokenResponse(CamelModel):
    """Response schema for token refresh."""

    message: str
    token: str
    expires_in: str


# Dependencies
def get_token_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenService:
    return TokenService.from_settings(settings)


def get_account_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccountStore:
    return AccountStore(db, bcrypt_rounds=settings.bcrypt_rounds)


def get_auth_flow(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    notifier: Annotated[NotificationSender, Depends(get_notification_sender)],
) -> AuthFlow:
    return AuthFlow(db, settings, tokens, notifier)


def get_authenticator(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    accounts: Annotated[AccountStore, Depends(get_account_store)],
) -> SessionAuthenticator:
    revocations = RevocationStore(db) if settings.revoke_tokens_on_logout else None
    return SessionAuthenticator(tokens, accounts, revocations)


async def get_current_session(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    authenticator: Annotated[SessionAuthenticator, Depends(get_authenticator)],
) -> AuthenticatedSession:
    """
    Dependency resolving the bearer token to an active account.
    Raises AuthenticationError if not authenticated or the token is invalid/expired.
    """
    session = await authenticator.authenticate(
        credentials.credentials if credentials is not None else None
    )
    request.state.account = session.account
    return session


async def get_current_account(
    session: Annotated[AuthenticatedSession, Depends(get_current_session)],
) -> Account:
    return session.account


async def get_optional_account(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    authenticator: Annotated[SessionAuthenticator, Depends(get_authenticator)],
) -> Account | None:
    """
    Dependency for endpoints that personalize when authenticated.
    Never fails; yields None when the token is absent or unusable.
    """
    session = await authenticator.authenticate_optional(
        credentials.credentials if credentials is not None else None
    )
    request.state.account = session.account if session is not None else None
    return request.state.account


# Routes
@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """
    Register a new account with a password.
    Returns the public profile and a token.
    """
    result = await flow.signup(
        request.email, request.username, request.password, request.confirm_password
    )
    return AuthResponse(
        message="User registered successfully",
        user=PublicProfile.from_account(result.account),
        token=result.token,
        expires_in=settings.jwt_expires_in,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """
    Login with email and password.
    """
    result = await flow.login(request.email, request.password)
    return AuthResponse(
        message="Login successful",
        user=PublicProfile.from_account(result.account),
        token=result.token,
        expires_in=settings.jwt_expires_in,
    )


@router.post("/logout", response_model=MessageResponse, response_model_exclude_none=True)
async def logout(
    session: Annotated[AuthenticatedSession, Depends(get_current_session)],
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
) -> MessageResponse:
    """
    Logout. The client discards its token; the server may denylist it.
    """
    await flow.logout(session)
    return MessageResponse(
        message="Logout successful",
        note="Please remove the token from your client storage",
    )


@router.post("/change-password", response_model=MessageResponse, response_model_exclude_none=True)
async def change_password(
    request: ChangePasswordRequest,
    account: Annotated[Account, Depends(get_current_account)],
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
) -> MessageResponse:
    """
    Change the password after re-checking the current one.
    """
    await flow.change_password(account, request.current_password, request.new_password)
    return MessageResponse(
        message="Password changed successfully",
        note="You will need to login again with your new password",
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    account: Annotated[Account, Depends(get_current_account)],
) -> UserResponse:
    """
    Get the current authenticated account's profile.
    """
    return UserResponse(user=PublicProfile.from_account(account))


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    account: Annotated[Account, Depends(get_current_account)],
    flow: Annotated[AuthFlow, Depends(get_auth_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """
    Issue a fresh token for the authenticated caller.
    """
    return TokenResponse(
        message="Token refreshed successfully",
        token=flow.refresh(account),
        expires_in=settings.jwt_expires_in,
    )

"""
Account profile, statistics and leaderboard routes for Auth Backend.
"""

import logging
import math
import secrets
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.api.auth import get_account_store, get_current_account, get_optional_account
from auth_backend.api.schemas import (
    CamelModel,
    GameStats,
    MessageResponse,
    PublicProfile,
    UserResponse,
    check_email,
    check_username,
)
from auth_backend.api.utils import paging_value
from auth_backend.auth.errors import DuplicateError
from auth_backend.database import get_db
from auth_backend.models.account import Account
from auth_backend.store.accounts import AccountStore

logger = logging.getLogger(__name__)

router = APIRouter()

LEADERBOARD_DEFAULT_LIMIT = 10
LEADERBOARD_MAX_LIMIT = 100


# Request/Response schemas
class ProfileUpdateRequest(CamelModel):
    """Request schema for profile update. Omitted fields stay unchanged."""

    username: str | None = None
    email: str | None = None

    @field_validator("username")
    @classmethod
    def check_optional_username(cls, value: str | None) -> str | None:
        return check_username(value) if value is not None else None

    @field_validator("email")
    @classmethod
    def check_optional_email(cls, value: str | None) -> str | None:
        return check_email(value) if value is not None else None


class ProfileUpdateResponse(CamelModel):
    message: str
    user: PublicProfile


class StatsUpdateRequest(CamelModel):
    """Request schema for a stats submission."""

    total_play_time: int | None = None
    games_played: int | None = None
    high_score: int | None = None


class StatsResponse(CamelModel):
    stats: GameStats
    last_login: datetime | None
    login_count: int
    member_since: datetime


class StatsUpdateResponse(CamelModel):
    message: str
    stats: GameStats


class LeaderboardEntry(CamelModel):
    rank: int
    username: str
    high_score: int
    games_played: int
    member_since: datetime


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    limit: int


class CurrentUserRank(CamelModel):
    rank: int
    username: str
    high_score: int


class LeaderboardResponse(CamelModel):
    leaderboard: list[LeaderboardEntry]
    pagination: Pagination
    current_user: CurrentUserRank | None = None


class SessionStartResponse(CamelModel):
    message: str
    session_id: str
    user: PublicProfile


# Routes
@router.get("/profile", response_model=UserResponse)
async def get_profile(
    account: Annotated[Account, Depends(get_current_account)],
) -> UserResponse:
    """
    Get the current account's profile.
    """
    return UserResponse(user=PublicProfile.from_account(account))


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    account: Annotated[Account, Depends(get_current_account)],
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfileUpdateResponse:
    """
    Change username and/or email.
    Both are checked for uniqueness before anything is written.
    """
    new_username = request.username if request.username not in (None, account.username) else None
    new_email = request.email if request.email not in (None, account.email) else None

    if new_username is not None and await accounts.find_by_username(new_username) is not None:
        raise DuplicateError("username")
    if new_email is not None and await accounts.find_by_email(new_email, include_inactive=True) is not None:
        raise DuplicateError("email")

    if new_username is not None:
        account.username = new_username
    if new_email is not None:
        account.email = new_email
    await accounts.save(account)
    await db.commit()
    await db.refresh(account)

    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=PublicProfile.from_account(account),
    )


@router.delete("/profile", response_model=MessageResponse)
async def delete_profile(
    account: Annotated[Account, Depends(get_current_account)],
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """
    Deactivate the account. Nothing is removed; the account stops
    being able to log in.
    """
    await accounts.deactivate(account)
    await db.commit()
    logger.info(f"Account deactivated: {account.id}")

    return MessageResponse(
        message="Account deactivated successfully",
        note="Your account has been deactivated. Contact support to reactivate if needed.",
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    account: Annotated[Account, Depends(get_current_account)],
) -> StatsResponse:
    """
    Get the current account's game statistics.
    """
    return StatsResponse(
        stats=GameStats.from_account(account),
        last_login=account.last_login,
        login_count=account.login_count,
        member_since=account.created_at,
    )


@router.put("/stats", response_model=StatsUpdateResponse)
async def update_stats(
    request: StatsUpdateRequest,
    account: Annotated[Account, Depends(get_current_account)],
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> StatsUpdateResponse:
    """
    Submit game statistics.
    The high score only increases; play time and games played are
    clamped to zero and replace the stored values.
    """
    await accounts.update_stats(
        account,
        total_play_time=request.total_play_time,
        games_played=request.games_played,
        high_score=request.high_score,
    )
    await db.commit()

    return StatsUpdateResponse(
        message="Statistics updated successfully",
        stats=GameStats.from_account(account),
    )


@router.get("/leaderboard", response_model=LeaderboardResponse, response_model_exclude_none=True)
async def leaderboard(
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    viewer: Annotated[Account | None, Depends(get_optional_account)],
    limit: Annotated[str | None, Query()] = None,
    page: Annotated[str | None, Query()] = None,
) -> LeaderboardResponse:
    """
    Top players by high score.
    Authenticated callers also get their own rank. Unusable paging
    values fall back to the defaults.
    """
    limit = paging_value(limit, LEADERBOARD_DEFAULT_LIMIT, maximum=LEADERBOARD_MAX_LIMIT)
    page = paging_value(page, 1)
    offset = (page - 1) * limit
    rows, total = await accounts.leaderboard(limit=limit, offset=offset)

    current_user = None
    if viewer is not None:
        current_user = CurrentUserRank(
            rank=await accounts.rank_of(viewer),
            username=viewer.username,
            high_score=viewer.high_score,
        )

    return LeaderboardResponse(
        leaderboard=[
            LeaderboardEntry(
                rank=offset + index + 1,
                username=row.username,
                high_score=row.high_score,
                games_played=row.games_played,
                member_since=row.created_at,
            )
            for index, row in enumerate(rows)
        ],
        pagination=Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_users=total,
            limit=limit,
        ),
        current_user=current_user,
    )


@router.post("/session-start", response_model=SessionStartResponse)
async def session_start(
    account: Annotated[Account, Depends(get_current_account)],
    accounts: Annotated[AccountStore, Depends(get_account_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SessionStartResponse:
    """
    Record the start of a game session.
    """
    await accounts.record_login(account)
    await db.commit()

    return SessionStartResponse(
        message="Game session started",
        session_id=secrets.token_hex(8),
        user=PublicProfile.from_account(account),
    )

"""
Shared request validation and response schemas for the API routes.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from auth_backend.auth.validation import check_email, check_new_password, check_username
from auth_backend.models.account import Account

__all__ = [
    "CamelModel",
    "GameStats",
    "MessageResponse",
    "PublicProfile",
    "UserResponse",
    "check_email",
    "check_new_password",
    "check_username",
]


class CamelModel(BaseModel):
    """Base schema exchanging camelCase JSON with snake_case attributes."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class GameStats(CamelModel):
    total_play_time: int
    games_played: int
    high_score: int

    @classmethod
    def from_account(cls, account: Account) -> "GameStats":
        return cls(
            total_play_time=account.total_play_time,
            games_played=account.games_played,
            high_score=account.high_score,
        )


class PublicProfile(CamelModel):
    """Account fields that are safe to return to clients."""

    id: UUID
    email: str
    username: str
    is_active: bool
    last_login: datetime | None
    login_count: int
    game_stats: GameStats
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "PublicProfile":
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            is_active=account.is_active,
            last_login=account.last_login,
            login_count=account.login_count,
            game_stats=GameStats.from_account(account),
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class UserResponse(CamelModel):
    user: PublicProfile


class MessageResponse(CamelModel):
    message: str
    note: str | None = None

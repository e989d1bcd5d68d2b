"""
Account model for Auth Backend.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from auth_backend.database import Base


class Account(Base):
    """
    Player account model.
    Stores identity, credentials, OTP challenge state, activity counters
    and game statistics.
    """

    __tablename__ = "accounts"

    id: Mapped[Uuid] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=False,
    )
    # Absent for accounts created through the OTP flow
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Open OTP challenge, both null outside a challenge window
    otp_code: Mapped[str | None] = mapped_column(
        String(6),
        nullable=True,
    )
    otp_expiry: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    login_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    # Game statistics
    total_play_time: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    games_played: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    high_score: Mapped[int] = mapped_column(
        Integer,
        default=0,
        index=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        index=True,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, username={self.username})>"

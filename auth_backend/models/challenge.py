"""
Pending OTP challenge model for Auth Backend.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from auth_backend.database import Base


class PendingChallenge(Base):
    """
    One-time code sent to an email address that has no account yet.
    Keyed by email so a re-issue replaces the previous code.
    """

    __tablename__ = "pending_challenges"

    email: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    code: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        index=True,
        nullable=False,
    )
    # Set by the first successful verify that did not carry a username
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PendingChallenge(email={self.email}, expires_at={self.expires_at})>"

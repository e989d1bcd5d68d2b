"""
Revoked token model for Auth Backend.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from auth_backend.database import Base


class RevokedToken(Base):
    """
    Denylist entry for a bearer token that was logged out.
    Rows are only useful until the token would have expired anyway.
    """

    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    account_id: Mapped[Uuid] = mapped_column(
        Uuid,
        index=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        index=True,
        nullable=False,
    )
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RevokedToken(jti={self.jti}, account_id={self.account_id})>"

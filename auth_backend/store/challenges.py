"""
Pending challenge store: OTP codes for emails without an account.
"""

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.models.challenge import PendingChallenge
from auth_backend.store.accounts import normalize_email


class ChallengeStore:
    """Durable, expiring challenges keyed by email. The caller owns the transaction."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, email: str) -> PendingChallenge | None:
        # Rows are rewritten by bulk statements; always reload from the database
        result = await self._db.execute(
            select(PendingChallenge)
            .where(PendingChallenge.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _insert(self):
        """Dialect insert construct that supports ``ON CONFLICT``."""
        if self._db.get_bind().dialect.name == "postgresql":
            return postgresql.insert(PendingChallenge)
        return sqlite.insert(PendingChallenge)

    async def put(self, email: str, code: str, expires_at: datetime) -> None:
        """
        Store a challenge, overwriting any earlier code for the same email.

        A single upsert, so concurrent issues for one address end with the
        last write in place instead of a unique violation.
        """
        now = datetime.utcnow()
        stmt = self._insert().values(
            email=normalize_email(email),
            code=code,
            expires_at=expires_at,
            verified_at=None,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PendingChallenge.email],
            set_={
                "code": stmt.excluded.code,
                "expires_at": stmt.excluded.expires_at,
                "verified_at": None,
                "created_at": stmt.excluded.created_at,
            },
        )
        await self._db.execute(stmt)

    async def mark_verified(self, email: str, code: str, now: datetime) -> bool:
        """
        Atomically flag a matching, unexpired, not yet verified challenge as verified.

        Returns:
            True for exactly one caller per issued code.
        """
        result = await self._db.execute(
            update(PendingChallenge)
            .where(
                PendingChallenge.email == normalize_email(email),
                PendingChallenge.code == code,
                PendingChallenge.expires_at >= now,
                PendingChallenge.verified_at.is_(None),
            )
            .values(verified_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def consume(self, email: str, code: str, now: datetime) -> bool:
        """
        Atomically delete a matching, unexpired challenge.

        Returns:
            True for exactly one caller per issued code.
        """
        result = await self._db.execute(
            delete(PendingChallenge)
            .where(
                PendingChallenge.email == normalize_email(email),
                PendingChallenge.code == code,
                PendingChallenge.expires_at >= now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def discard(self, email: str) -> None:
        await self._db.execute(
            delete(PendingChallenge)
            .where(PendingChallenge.email == normalize_email(email))
            .execution_options(synchronize_session=False)
        )

    async def purge_expired(self, now: datetime) -> int:
        """Delete every expired challenge. Returns the number removed."""
        result = await self._db.execute(
            delete(PendingChallenge)
            .where(PendingChallenge.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

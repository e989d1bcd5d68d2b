"""
Token denylist, used when logout revocation is enabled.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.models.revoked_token import RevokedToken


class RevocationStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def revoke(self, token_id: str, account_id: UUID, expires_at: datetime) -> None:
        if await self._db.get(RevokedToken, token_id) is not None:
            return
        self._db.add(RevokedToken(jti=token_id, account_id=account_id, expires_at=expires_at))
        await self._db.flush()

    async def is_revoked(self, token_id: str) -> bool:
        result = await self._db.execute(
            select(RevokedToken.jti).where(RevokedToken.jti == token_id)
        )
        return result.scalar_one_or_none() is not None

    async def purge_expired(self, now: datetime) -> int:
        """Drop entries for tokens that would be rejected as expired anyway."""
        result = await self._db.execute(
            delete(RevokedToken)
            .where(RevokedToken.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

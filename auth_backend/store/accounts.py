"""
Credential store: durable account records.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.auth.errors import DuplicateError
from auth_backend.auth.passwords import hash_if_changed
from auth_backend.models.account import Account

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountStore:
    """
    Account persistence on top of an async SQLAlchemy session.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = 12) -> None:
        self._db = db
        self._bcrypt_rounds = bcrypt_rounds

    async def create(self, email: str, username: str, password: str | None = None) -> Account:
        """
        Create a new account.

        Raises:
            DuplicateError: If the email or username is already registered.
        """
        email = normalize_email(email)
        username = username.strip()

        if await self.find_by_email(email, include_inactive=True) is not None:
            raise DuplicateError("email")
        if await self.find_by_username(username) is not None:
            raise DuplicateError("username")

        account = Account(email=email, username=username)
        hash_if_changed(account, password, self._bcrypt_rounds)
        self._db.add(account)
        await self._flush_unique(email=email, username=username)
        await self._db.refresh(account)
        return account

    async def find_by_id(self, account_id: UUID) -> Account | None:
        """Active account by id; deactivated accounts are treated as gone."""
        result = await self._db.execute(
            select(Account).where(Account.id == account_id, Account.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str, include_inactive: bool = False) -> Account | None:
        query = select(Account).where(Account.email == normalize_email(email))
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        result = await self._db.execute(query)
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Account | None:
        result = await self._db.execute(
            select(Account).where(Account.username == username.strip())
        )
        return result.scalar_one_or_none()

    async def save(self, account: Account) -> None:
        """
        Persist pending changes to an account.

        Raises:
            DuplicateError: If a changed email or username collides with another account.
        """
        self._db.add(account)
        await self._flush_unique(email=account.email, username=account.username)

    async def _flush_unique(self, *, email: str, username: str) -> None:
        try:
            await self._db.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent insert; work out which field collided
            await self._db.rollback()
            logger.info(f"Unique constraint violation on account write: {exc.orig}")
            if await self.find_by_email(email, include_inactive=True) is not None:
                raise DuplicateError("email") from exc
            raise DuplicateError("username") from exc

    async def record_login(self, account: Account, now: datetime | None = None) -> None:
        """Increment the login counter and stamp the login time."""
        await self._db.execute(
            update(Account)
            .where(Account.id == account.id)
            .values(
                login_count=Account.login_count + 1,
                last_login=now or datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self._db.refresh(account)

    async def set_otp(self, account: Account, code: str, expires_at: datetime) -> None:
        """Attach a challenge, replacing any earlier one."""
        account.otp_code = code
        account.otp_expiry = expires_at
        await self.save(account)

    async def clear_otp_if_matches(self, account: Account, code: str, now: datetime) -> bool:
        """
        Atomically clear the account's challenge if it still holds ``code`` and is unexpired.

        Returns:
            True for exactly one caller per issued code.
        """
        result = await self._db.execute(
            update(Account)
            .where(
                Account.id == account.id,
                Account.otp_code == code,
                Account.otp_expiry >= now,
            )
            .values(otp_code=None, otp_expiry=None)
            .execution_options(synchronize_session=False)
        )
        await self._db.refresh(account)
        return result.rowcount == 1

    async def clear_otp(self, account: Account) -> None:
        account.otp_code = None
        account.otp_expiry = None
        await self.save(account)

    async def update_stats(
        self,
        account: Account,
        *,
        total_play_time: int | None = None,
        games_played: int | None = None,
        high_score: int | None = None,
    ) -> None:
        """
        Apply a stats submission in a single statement.

        Play time and games played are clamped to zero and overwritten;
        the high score only ever increases.
        """
        values = {}
        if total_play_time is not None:
            values["total_play_time"] = max(0, total_play_time)
        if games_played is not None:
            values["games_played"] = max(0, games_played)
        if high_score is not None:
            values["high_score"] = case(
                (Account.high_score < high_score, high_score),
                else_=Account.high_score,
            )
        if values:
            values["updated_at"] = datetime.utcnow()
            await self._db.execute(
                update(Account)
                .where(Account.id == account.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        await self._db.refresh(account)

    async def deactivate(self, account: Account) -> None:
        account.is_active = False
        await self.save(account)

    async def leaderboard(self, limit: int, offset: int) -> tuple[list[Account], int]:
        """Active accounts ordered by high score, with the total active count."""
        result = await self._db.execute(
            select(Account)
            .where(Account.is_active.is_(True))
            .order_by(Account.high_score.desc(), Account.created_at.asc())
            .limit(limit)
            .offset(offset)
        )
        accounts = list(result.scalars().all())

        total = await self._db.scalar(
            select(func.count()).select_from(Account).where(Account.is_active.is_(True))
        )
        return accounts, int(total or 0)

    async def rank_of(self, account: Account) -> int:
        """1-based position of the account on the leaderboard (ties share a rank)."""
        ahead = await self._db.scalar(
            select(func.count())
            .select_from(Account)
            .where(
                Account.is_active.is_(True),
                Account.high_score > account.high_score,
            )
        )
        return int(ahead or 0) + 1

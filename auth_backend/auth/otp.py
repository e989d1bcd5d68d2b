"""
One-time code challenges.

A code proves ownership of an email address. For a known account the code is
kept on the account row; for an unknown address it is kept in the pending
challenge table until an account is created from it.

Per email address::

    NO_CHALLENGE --issue--> PENDING --verify ok--> CONSUMED
    PENDING --verify wrong code--> PENDING
    PENDING --verify after expiry--> EXPIRED (cleared, must re-issue)
    PENDING --issue--> PENDING (new code and expiry replace the old ones)
"""

import enum
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from auth_backend.models.account import Account
from auth_backend.store.accounts import AccountStore, normalize_email
from auth_backend.store.challenges import ChallengeStore

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999


class OtpOutcome(enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


@dataclass
class IssuedCode:
    code: str
    expires_at: datetime
    # None when the code was stored as a pending challenge
    account: Account | None

    @property
    def is_new_user(self) -> bool:
        return self.account is None


def generate_code() -> str:
    """Uniform random 6-digit code."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def evaluate(stored_code: str | None, expires_at: datetime | None, supplied: str, now: datetime) -> OtpOutcome:
    """Compare a supplied code with the stored one. Expiry is checked before equality."""
    if stored_code is None or expires_at is None:
        return OtpOutcome.NOT_FOUND
    if now > expires_at:
        return OtpOutcome.EXPIRED
    if not hmac.compare_digest(stored_code.encode(), supplied.encode()):
        return OtpOutcome.INVALID
    return OtpOutcome.VALID


class OtpManager:
    """Issues, verifies and consumes one-time codes."""

    def __init__(
        self,
        accounts: AccountStore,
        challenges: ChallengeStore,
        ttl: timedelta = timedelta(minutes=10),
    ) -> None:
        self._accounts = accounts
        self._challenges = challenges
        self.ttl = ttl

    async def issue(self, email: str, account: Account | None = None, now: datetime | None = None) -> IssuedCode:
        """
        Generate a code for an email address and store it with its expiry.

        Args:
            email: Address the code will be sent to
            account: The active account owning the address, if any
            now: Issue time (naive UTC), defaults to the current time
        """
        now = now or datetime.utcnow()
        code = generate_code()
        expires_at = now + self.ttl

        if account is not None:
            await self._accounts.set_otp(account, code, expires_at)
        else:
            purged = await self._challenges.purge_expired(now)
            if purged:
                logger.debug(f"Purged {purged} expired pending challenges")
            await self._challenges.put(normalize_email(email), code, expires_at)

        logger.info(
            f"Issued OTP for {redact_email(email)} "
            f"({'existing account' if account is not None else 'pending signup'})"
        )
        return IssuedCode(code=code, expires_at=expires_at, account=account)

    async def verify_account(self, account: Account, code: str, now: datetime | None = None) -> OtpOutcome:
        """
        Verify and consume the challenge attached to an account.

        A stale challenge is cleared as a side effect.
        """
        now = now or datetime.utcnow()
        outcome = evaluate(account.otp_code, account.otp_expiry, code, now)

        if outcome is OtpOutcome.EXPIRED:
            await self._accounts.clear_otp(account)
        elif outcome is OtpOutcome.VALID:
            if not await self._accounts.clear_otp_if_matches(account, code, now):
                # Another request consumed the code first
                outcome = OtpOutcome.INVALID
        return outcome

    async def verify_pending(
        self,
        email: str,
        code: str,
        *,
        mark_verified: bool = False,
        now: datetime | None = None,
    ) -> OtpOutcome:
        """
        Verify a pending challenge without consuming it.

        With ``mark_verified`` the check succeeds only once per code, so a
        username-less verify cannot be replayed. Completing the signup with
        ``consume_pending`` still accepts a verified, unexpired code.
        """
        now = now or datetime.utcnow()
        challenge = await self._challenges.get(email)
        if challenge is None:
            return OtpOutcome.NOT_FOUND

        outcome = evaluate(challenge.code, challenge.expires_at, code, now)
        if outcome is OtpOutcome.EXPIRED:
            await self._challenges.discard(email)
        elif outcome is OtpOutcome.VALID and mark_verified:
            if not await self._challenges.mark_verified(email, code, now):
                outcome = OtpOutcome.INVALID
        return outcome

    async def consume_pending(self, email: str, code: str, now: datetime | None = None) -> bool:
        """Atomically consume a pending challenge. Only one caller can win."""
        return await self._challenges.consume(email, code, now or datetime.utcnow())

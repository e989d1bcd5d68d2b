"""
Authentication flows: signup, password login, OTP send/verify, logout,
password change and token refresh.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_backend.auth.authenticator import AuthenticatedSession
from auth_backend.auth.errors import (
    AuthenticationError,
    ChallengeError,
    DependencyError,
    DuplicateError,
    ValidationError,
)
from auth_backend.auth.otp import OtpManager, OtpOutcome, redact_email
from auth_backend.auth.passwords import hash_password, verify_password
from auth_backend.auth.tokens import TokenService
from auth_backend.auth.validation import check_username
from auth_backend.config import Settings
from auth_backend.models.account import Account
from auth_backend.notifications import NotificationError, NotificationSender
from auth_backend.store.accounts import AccountStore, normalize_email
from auth_backend.store.challenges import ChallengeStore
from auth_backend.store.revocations import RevocationStore

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    """A successful login or signup."""

    account: Account
    token: str


@dataclass
class OtpSendResult:
    is_new_user: bool


@dataclass
class OtpVerifyResult:
    email: str
    account: Account | None = None
    token: str | None = None
    needs_username: bool = False
    created: bool = False


def invalid_credentials_error() -> AuthenticationError:
    return AuthenticationError("Email or password is incorrect", error="Invalid credentials")


def challenge_error(outcome: OtpOutcome) -> ChallengeError:
    if outcome is OtpOutcome.EXPIRED:
        return ChallengeError(
            "The OTP has expired. Please request a new code",
            error="OTP expired",
        )
    return ChallengeError("The OTP you entered is invalid or has expired")


class AuthFlow:
    """
    Ties the credential store, OTP manager and token service together.

    One instance serves one request: it shares that request's database
    session and commits once per successful operation.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        tokens: TokenService,
        notifier: NotificationSender,
    ) -> None:
        self._db = db
        self._settings = settings
        self.tokens = tokens
        self._notifier = notifier
        self.accounts = AccountStore(db, bcrypt_rounds=settings.bcrypt_rounds)
        self.challenges = ChallengeStore(db)
        self.revocations = RevocationStore(db)
        self.otp = OtpManager(self.accounts, self.challenges, ttl=settings.otp_ttl)

    async def signup(self, email: str, username: str, password: str, confirm_password: str) -> AuthResult:
        """
        Register a new account with a password and log it in.

        Raises:
            ValidationError: If the confirmation does not match.
            DuplicateError: If the email or username is already registered.
        """
        if password != confirm_password:
            raise ValidationError(
                "Please check your input data",
                details=[{
                    "field": "confirmPassword",
                    "message": "Password confirmation does not match password",
                }],
            )

        account = await self.accounts.create(email, username, password)
        await self.accounts.record_login(account)
        token = self.tokens.issue(account.id)
        await self._db.commit()

        logger.info(f"Account created: {account.username} ({account.id})")
        return AuthResult(account=account, token=token)

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Raises:
            AuthenticationError: Generic invalid credentials, whichever check failed.
        """
        account = await self.accounts.find_by_email(email)
        # Generic error message to prevent info leakage
        if account is None or not verify_password(account, password):
            logger.info(f"Failed password login for {redact_email(normalize_email(email))}")
            raise invalid_credentials_error()

        await self.accounts.record_login(account)
        token = self.tokens.issue(account.id)
        await self._db.commit()
        return AuthResult(account=account, token=token)

    async def send_otp(self, email: str) -> OtpSendResult:
        """
        Issue a code for the address and deliver it.

        Raises:
            DependencyError: If the notification sender fails; the code is discarded.
        """
        email = normalize_email(email)
        account = await self.accounts.find_by_email(email, include_inactive=True)

        if account is not None and not account.is_active:
            # Deactivated accounts cannot log in; answer like any known address
            logger.info(f"OTP requested for deactivated account {redact_email(email)}; not sent")
            return OtpSendResult(is_new_user=False)

        issued = await self.otp.issue(email, account=account)
        try:
            await self._notifier.send_otp(email, issued.code, self._settings.otp_expiry_minutes)
        except NotificationError as exc:
            await self._db.rollback()
            logger.error(f"Failed to deliver OTP to {redact_email(email)}: {exc}")
            raise DependencyError(
                "Unable to send OTP to your email. Please try again.",
                error="Failed to send OTP",
            ) from exc

        await self._db.commit()
        return OtpSendResult(is_new_user=issued.is_new_user)

    async def verify_otp(self, email: str, code: str, username: str | None = None) -> OtpVerifyResult:
        """
        Verify a code and log in, or advance or complete a new-user signup.

        - Known account: consume the code and log in; ``username`` is ignored.
        - Unknown address without ``username``: check the code and ask for a username.
        - Unknown address with ``username``: check the code, create the account
          and consume the code.

        Raises:
            ChallengeError: If the code is missing, wrong, expired or already used.
            ValidationError: If a new user's username breaks the format rules.
            DuplicateError: If the chosen username is taken.
        """
        email = normalize_email(email)
        account = await self.accounts.find_by_email(email, include_inactive=True)

        if account is not None:
            if not account.is_active:
                raise challenge_error(OtpOutcome.NOT_FOUND)
            outcome = await self.otp.verify_account(account, code)
            if outcome is not OtpOutcome.VALID:
                # Keep the stale-code cleanup
                await self._db.commit()
                raise challenge_error(outcome)

            await self.accounts.record_login(account)
            token = self.tokens.issue(account.id)
            await self._db.commit()
            return OtpVerifyResult(email=email, account=account, token=token)

        if username is None:
            outcome = await self.otp.verify_pending(email, code, mark_verified=True)
            await self._db.commit()
            if outcome is not OtpOutcome.VALID:
                raise challenge_error(outcome)
            return OtpVerifyResult(email=email, needs_username=True)

        try:
            username = check_username(username)
        except ValueError as exc:
            raise ValidationError(
                "Please check your input data",
                details=[{"field": "username", "message": str(exc), "value": username}],
            ) from exc

        outcome = await self.otp.verify_pending(email, code)
        if outcome is not OtpOutcome.VALID:
            await self._db.commit()
            raise challenge_error(outcome)

        if await self.accounts.find_by_username(username) is not None:
            raise DuplicateError("username")

        account = await self.accounts.create(email, username)
        if not await self.otp.consume_pending(email, code):
            # A concurrent request completed this signup first
            await self._db.rollback()
            raise challenge_error(OtpOutcome.INVALID)

        await self.accounts.record_login(account)
        token = self.tokens.issue(account.id)
        await self._db.commit()

        logger.info(f"Account created via OTP: {account.username} ({account.id})")
        return OtpVerifyResult(email=email, account=account, token=token, created=True)

    async def logout(self, session: AuthenticatedSession) -> None:
        """
        Advisory logout. With revocation enabled the token id is denylisted;
        bookkeeping failures are logged and never reach the client.
        """
        if not self._settings.revoke_tokens_on_logout:
            return
        try:
            await self.revocations.purge_expired(datetime.utcnow())
            await self.revocations.revoke(
                session.claims.token_id,
                session.account.id,
                session.claims.expires_at,
            )
            await self._db.commit()
        except SQLAlchemyError as exc:
            logger.warning(f"Could not record logout for {session.account.id}: {exc}")
            await self._db.rollback()

    async def change_password(self, account: Account, current_password: str, new_password: str) -> None:
        """
        Replace the password after re-checking the current one. Always re-hashes.

        Raises:
            ValidationError: If the current password is wrong.
        """
        if not verify_password(account, current_password):
            raise ValidationError(
                "The current password you entered is incorrect",
                error="Invalid current password",
            )

        account.password_hash = hash_password(new_password, self._settings.bcrypt_rounds)
        await self.accounts.save(account)
        await self._db.commit()
        logger.info(f"Password changed for {account.id}")

    def refresh(self, account: Account) -> str:
        """Mint a new token with a fresh expiry. Earlier tokens stay valid."""
        return self.tokens.issue(account.id)

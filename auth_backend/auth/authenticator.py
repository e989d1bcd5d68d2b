"""
Resolves bearer tokens to live accounts.
"""

import logging
from dataclasses import dataclass

from auth_backend.auth.errors import AuthenticationError
from auth_backend.auth.tokens import TokenClaims, TokenError, TokenErrorKind, TokenService
from auth_backend.models.account import Account
from auth_backend.store.accounts import AccountStore
from auth_backend.store.revocations import RevocationStore

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedSession:
    account: Account
    claims: TokenClaims
    token: str


def missing_token_error() -> AuthenticationError:
    return AuthenticationError(
        "Please provide a valid authentication token",
        error="Access denied. No token provided.",
    )


def invalid_token_error(message: str = "The provided token is invalid or expired") -> AuthenticationError:
    return AuthenticationError(message, error="Invalid token.")


def expired_token_error() -> AuthenticationError:
    return AuthenticationError(
        "Your session has expired. Please login again",
        error="Token expired.",
    )


class SessionAuthenticator:
    """
    Verifies a token, then re-reads the account so deactivated accounts and
    revoked tokens are rejected even while the signature is still valid.
    """

    def __init__(
        self,
        tokens: TokenService,
        accounts: AccountStore,
        revocations: RevocationStore | None = None,
    ) -> None:
        self._tokens = tokens
        self._accounts = accounts
        self._revocations = revocations

    async def authenticate(self, token: str | None) -> AuthenticatedSession:
        """
        Raises:
            AuthenticationError: If the token is missing, malformed, expired,
                has a bad signature, was revoked, or the account is gone or inactive.
        """
        if not token:
            raise missing_token_error()

        try:
            claims = self._tokens.verify(token)
        except TokenError as exc:
            logger.debug(f"Token rejected ({exc.kind.value}): {exc}")
            if exc.kind is TokenErrorKind.EXPIRED:
                raise expired_token_error() from exc
            raise invalid_token_error() from exc

        if self._revocations is not None and await self._revocations.is_revoked(claims.token_id):
            raise invalid_token_error("This token has been revoked. Please login again")

        account = await self._accounts.find_by_id(claims.account_id)
        if account is None:
            raise invalid_token_error("User not found or account deactivated")

        return AuthenticatedSession(account=account, claims=claims, token=token)

    async def authenticate_optional(self, token: str | None) -> AuthenticatedSession | None:
        """Same resolution, but any failure yields None instead of an error."""
        if not token:
            return None
        try:
            return await self.authenticate(token)
        except AuthenticationError:
            return None

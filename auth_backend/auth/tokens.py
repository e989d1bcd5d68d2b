"""
Bearer token issuance and verification.
"""

import calendar
import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

from auth_backend.config import Settings


class TokenErrorKind(enum.Enum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"


class TokenError(Exception):
    """Raised when a token cannot be accepted."""

    def __init__(self, kind: TokenErrorKind, reason: str = "") -> None:
        super().__init__(reason or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class TokenClaims:
    """Decoded contents of a verified token."""

    account_id: UUID
    token_id: str
    issued_at: datetime
    expires_at: datetime


def _timestamp(moment: datetime) -> float:
    """Seconds since the epoch for a naive UTC datetime."""
    return calendar.timegm(moment.utctimetuple()) + moment.microsecond / 1_000_000


class TokenService:
    """
    Signs and verifies self-contained bearer tokens.

    Verification is stateless: it checks structure, signature and expiry only.
    Callers are expected to resolve the account afterwards.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", lifetime: timedelta = timedelta(days=7)) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.lifetime = lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(settings.secret_key, settings.algorithm, settings.token_lifetime)

    def issue(self, account_id: UUID, now: datetime | None = None) -> str:
        """
        Create a signed token for an account.

        Args:
            account_id: The account's UUID
            now: Issue time (naive UTC), defaults to the current time

        Returns:
            JWT token string
        """
        issued = int(_timestamp(now or datetime.utcnow()))
        claims = {
            "sub": str(account_id),
            "iat": issued,
            "exp": issued + int(self.lifetime.total_seconds()),
            "jti": secrets.token_hex(16),  # Unique token ID
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str, now: datetime | None = None) -> TokenClaims:
        """
        Decode and verify a token.

        Raises:
            TokenError: If the token is malformed, its signature does not
                match, or it has expired.
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenError(TokenErrorKind.MALFORMED, str(exc)) from exc

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenError(TokenErrorKind.SIGNATURE_INVALID, str(exc)) from exc

        try:
            account_id = UUID(claims["sub"])
            issued_at = int(claims["iat"])
            expires_at = int(claims["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenError(TokenErrorKind.MALFORMED, "missing or invalid claims") from exc

        if _timestamp(now or datetime.utcnow()) > expires_at:
            raise TokenError(TokenErrorKind.EXPIRED, "token has expired")

        return TokenClaims(
            account_id=account_id,
            token_id=str(claims.get("jti", "")),
            issued_at=datetime.utcfromtimestamp(issued_at),
            expires_at=datetime.utcfromtimestamp(expires_at),
        )

"""JWT access token creation and verification.

Learn: Tokens are signed with the process-wide secret from settings and carry the
tenant id (``sub``), the tenant email and an expiry. There is no refresh
token: a tenant logs in again once the access token lapses.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from tenantgate.config import settings
from tenantgate.errors import ConfigurationError, UnauthorizedError


class TokenError(UnauthorizedError):
    """Raised when token verification fails."""

    message = "invalid token"


class TokenExpiredError(TokenError):
    message = "token has expired"


class TokenMalformedError(TokenError):
    message = "invalid token"


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    email: str
    expires_at: datetime


def _signing_key() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT signing key is not configured")
    return settings.jwt_secret


def token_ttl() -> timedelta:
    return timedelta(minutes=settings.access_token_expire_minutes)


def issue_token(
    subject_id: int,
    email: str,
    ttl: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for a tenant."""
    key = _signing_key()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject_id),
        "email": email,
        "type": "access",
        "iat": now,
        "exp": now + (ttl if ttl is not None else token_ttl()),
    }
    return jwt.encode(payload, key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenClaims:
    """Verify and decode an access token.

    Raises TokenExpiredError or TokenMalformedError on failure.
    """
    key = _signing_key()
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(reason="expired")
    except jwt.InvalidTokenError as e:
        raise TokenMalformedError(reason=f"malformed: {e}")

    if payload.get("type") != "access":
        raise TokenMalformedError(reason="not an access token")
    try:
        subject_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise TokenMalformedError(reason="non-numeric subject")

    return TokenClaims(
        subject_id=subject_id,
        email=payload.get("email", ""),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )

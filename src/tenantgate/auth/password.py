"""Password and API-key secret hashing.

Learn: Uses bcrypt for both. Passwords are stored as (hash, salt) pairs: the salt
is kept in its own column so a password can be re-hashed with the exact
same salt and compared. Secrets rely on the salt bcrypt embeds in the hash.

bcrypt only looks at the first 72 bytes of its input; longer values are
truncated explicitly because recent bcrypt releases reject them outright.
"""

import hmac
import secrets
from functools import lru_cache
from typing import Optional

import bcrypt

from tenantgate.config import settings

_BCRYPT_MAX_BYTES = 72


def _encode(value: str) -> bytes:
    return value.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def new_salt(rounds: Optional[int] = None) -> str:
    """Generate a bcrypt salt string ("$2b$<rounds>$...")."""
    return bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds).decode("utf-8")


def hash_password(password: str, salt: Optional[str] = None) -> tuple[str, str]:
    """Hash a password, returning ``(password_hash, salt)``.

    Without a salt a fresh one is generated, so two calls with the same
    password differ. With the same salt the output is deterministic.
    """
    if salt is None:
        salt = new_salt()
    hashed = bcrypt.hashpw(_encode(password), salt.encode("utf-8"))
    return hashed.decode("utf-8"), salt


def verify_password(password: str, password_hash: str, salt: str) -> bool:
    """Re-hash with the stored salt and compare in constant time."""
    try:
        candidate, _ = hash_password(password, salt)
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), password_hash.encode("utf-8"))


def hash_secret(secret: str) -> str:
    """Hash raw API-key material. Salted internally, so never deterministic."""
    return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode(
        "utf-8"
    )


def verify_secret(secret: str, secret_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(secret), secret_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=1)
def _decoy() -> tuple[str, str]:
    return hash_password(secrets.token_urlsafe(16))


def verify_password_miss(password: str) -> bool:
    """Run a full password check against a throwaway hash; always False.

    Called when no account matches, so a miss costs the same bcrypt work
    as a wrong password.
    """
    password_hash, salt = _decoy()
    verify_password(password, password_hash, salt)
    return False


def verify_secret_miss(secret: str) -> bool:
    """Same as ``verify_password_miss`` for API key secrets."""
    password_hash, _ = _decoy()
    verify_secret(secret, password_hash)
    return False

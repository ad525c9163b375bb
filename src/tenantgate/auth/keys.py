"""API key identifier and secret generation.

Learn: A key has two parts: the ``kid`` (public, stored in plaintext, used to
look the key up) and the raw secret (shown once, only its bcrypt hash is
stored). Both are URL-safe.
"""

import secrets

KID_PREFIX = "kid_"
SECRET_PREFIX = "tg_"


def new_key_id() -> str:
    """Public key identifier: prefix + 96 random bits as hex."""
    return f"{KID_PREFIX}{secrets.token_hex(12)}"


def new_secret() -> str:
    """Raw key material: prefix + 256 random bits, base64url."""
    return f"{SECRET_PREFIX}{secrets.token_urlsafe(32)}"

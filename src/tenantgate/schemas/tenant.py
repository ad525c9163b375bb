"""Pydantic schemas for tenant registration, login and the public view.

Validation rules follow the public registration contract: name 3-255
characters, a plausible email, and a password of 8-100 characters with an
uppercase letter, a digit and one of ``!@#$%^&*``.
"""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PASSWORD_SPECIALS = "!@#$%^&*"


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not re.search(r"[A-Z]", value):
            raise ValueError("password must contain an uppercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("password must contain a digit")
        if not any(c in PASSWORD_SPECIALS for c in value):
            raise ValueError(f"password must contain one of {PASSWORD_SPECIALS}")
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=100)


# ─── Responses ──────────────────────────────────────────

class TenantPublic(BaseModel):
    """Tenant as shown to callers. No password, no salt."""
    id: int
    name: str
    email: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TokenInfo(BaseModel):
    accessToken: str
    tokenType: str = "Bearer"
    expiresIn: int


class AuthResponse(BaseModel):
    tenant: TenantPublic
    token: TokenInfo

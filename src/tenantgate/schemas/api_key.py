"""Pydantic schemas for tenant API keys.

``ApiKeyPublic`` is the only shape a key leaves the service in; it never
carries ``api_key_hash``. The raw secret appears once, in ``ApiKeyCreated``.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    label: Optional[str] = Field(None, max_length=255)
    expires_at: Optional[datetime] = None
    environment: Literal["production", "staging", "development"] = "production"


class ApiKeyRotate(BaseModel):
    label: Optional[str] = Field(None, max_length=255)
    expires_at: Optional[datetime] = None


class ApiKeyStatusChange(BaseModel):
    """Only ``inactive`` is accepted; anything else is answered with 400."""
    status: str


class ApiKeyPublic(BaseModel):
    id: int
    tenant_id: int
    kid: str
    label: str
    environment: str
    status: str
    created_at: datetime
    updated_at: datetime
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    rotated_from_key_id: Optional[int] = None

    model_config = {"from_attributes": True}


class ApiKeyCreated(BaseModel):
    """Response for key creation and rotation. ``api_key`` is shown once."""
    message: str
    api_key: str
    key: ApiKeyPublic


class Pagination(BaseModel):
    limit: int
    offset: int
    count: int


class ApiKeyList(BaseModel):
    data: list[ApiKeyPublic]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str

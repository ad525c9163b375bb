"""Pydantic schemas for end-customer sync."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tenantgate.schemas.tenant import EMAIL_PATTERN


class CustomerSyncRequest(BaseModel):
    # Credentials travel in the body; the tenant is derived from them only.
    api_key_id: Optional[str] = None
    api_key: Optional[str] = None
    external_customer_id: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=7, max_length=50)
    status: Optional[Literal["active", "inactive", "suspended"]] = None


class UserRead(BaseModel):
    id: int
    tenant_id: int
    external_customer_id: str
    name: str
    email: str
    phone: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CustomerSyncResponse(BaseModel):
    user: UserRead

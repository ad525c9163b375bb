"""FastAPI auth dependencies.

Learn: Used as Depends() in route handlers to resolve who is calling:

1. ``get_current_tenant`` → Bearer JWT from register/login
2. ``require_api_key`` → API key id + secret, from the JSON body
   (``api_key_id`` / ``api_key``) or the ``X-API-Key-Id`` / ``X-API-Key``
   headers

Handlers take the tenant id from the returned identity only, never from
request fields.
"""

import json
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from tenantgate.auth.jwt import TokenError, verify_token
from tenantgate.db.engine import get_uow
from tenantgate.errors import ConfigurationError, StorageError, UnauthorizedError
from tenantgate.http_errors import internal_error
from tenantgate.repositories.unit_of_work import UnitOfWork
from tenantgate.services.api_key_guard import ApiKeyAuthGuard, ApiKeyIdentity


@dataclass(frozen=True)
class TenantIdentity:
    """A tenant authenticated by access token."""

    tenant_id: int
    email: str


def _unauthorized(detail: str, scheme: Optional[str] = None) -> HTTPException:
    headers = {"WWW-Authenticate": scheme} if scheme else None
    return HTTPException(status_code=401, detail=detail, headers=headers)


async def get_current_tenant(
    authorization: Optional[str] = Header(None),
) -> TenantIdentity:
    """Resolve the tenant from a Bearer token (required, 401 otherwise)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Authentication required", "Bearer")
    try:
        claims = verify_token(authorization[7:])
    except TokenError as e:
        raise _unauthorized(str(e), "Bearer")
    except ConfigurationError as e:
        raise internal_error(e, "auth.token_verification_failed")
    return TenantIdentity(tenant_id=claims.subject_id, email=claims.email)


async def _body_credentials(request: Request) -> tuple[Optional[str], Optional[str]]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, None
    if not isinstance(body, dict):
        return None, None
    kid, secret = body.get("api_key_id"), body.get("api_key")
    return (
        kid if isinstance(kid, str) else None,
        secret if isinstance(secret, str) else None,
    )


async def require_api_key(
    request: Request,
    x_api_key_id: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
    uow: UnitOfWork = Depends(get_uow),
) -> ApiKeyIdentity:
    """Authenticate an integration call by API key (401 on any failure)."""
    kid, secret = x_api_key_id, x_api_key
    if not (kid and secret):
        kid, secret = await _body_credentials(request)
    try:
        return await ApiKeyAuthGuard(uow).authenticate(kid or "", secret or "")
    except UnauthorizedError as e:
        raise _unauthorized(str(e))
    except StorageError as e:
        raise internal_error(e, "auth.api_key_lookup_failed")

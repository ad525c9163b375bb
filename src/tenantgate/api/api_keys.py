"""API key routes for the authenticated tenant.

- POST   /tenants/api-keys              → create (secret returned once)
- GET    /tenants/api-keys              → list, paginated
- POST   /tenants/api-keys/{kid}        → {"status": "inactive"} deactivates
- DELETE /tenants/api-keys/{kid}        → remove
- POST   /tenants/api-keys/{kid}/rotate → replace with a new key
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tenantgate.auth.dependencies import TenantIdentity, get_current_tenant
from tenantgate.db.engine import get_uow
from tenantgate.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from tenantgate.http_errors import internal_error
from tenantgate.repositories.base import normalize_pagination
from tenantgate.repositories.unit_of_work import UnitOfWork
from tenantgate.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyList,
    ApiKeyPublic,
    ApiKeyRotate,
    ApiKeyStatusChange,
    MessageResponse,
    Pagination,
)
from tenantgate.services.api_key_service import ApiKeyLifecycleService

router = APIRouter(prefix="/tenants/api-keys")


@router.post("", response_model=ApiKeyCreated, status_code=201)
async def create_api_key(
    body: ApiKeyCreate,
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    try:
        secret, key = await ApiKeyLifecycleService(uow).create_api_key(
            identity.tenant_id,
            label=body.label,
            expires_at=body.expires_at,
            environment=body.environment,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "api_key.create_failed")
    return ApiKeyCreated(
        message="API key created. Store the secret now; it will not be shown again.",
        api_key=secret,
        key=ApiKeyPublic.model_validate(key),
    )


@router.get("", response_model=ApiKeyList)
async def list_api_keys(
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    limit, offset = normalize_pagination(limit, offset)
    try:
        keys = await ApiKeyLifecycleService(uow).list_api_keys(
            identity.tenant_id, limit=limit, offset=offset
        )
    except StorageError as e:
        raise internal_error(e, "api_key.list_failed")
    return ApiKeyList(
        data=[ApiKeyPublic.model_validate(k) for k in keys],
        pagination=Pagination(limit=limit, offset=offset, count=len(keys)),
    )


@router.post("/{kid}", response_model=MessageResponse)
async def change_api_key_status(
    kid: str,
    body: ApiKeyStatusChange,
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    """Deactivate a key. Reactivation is not supported."""
    if body.status != "inactive":
        raise HTTPException(status_code=400, detail="only 'inactive' is supported")
    try:
        await ApiKeyLifecycleService(uow).deactivate_api_key(kid, identity.tenant_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "api_key.deactivate_failed")
    return MessageResponse(message="API key deactivated")


@router.delete("/{kid}", response_model=MessageResponse)
async def remove_api_key(
    kid: str,
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    try:
        await ApiKeyLifecycleService(uow).remove_api_key(kid, identity.tenant_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "api_key.remove_failed")
    return MessageResponse(message="API key removed")


@router.post("/{kid}/rotate", response_model=ApiKeyCreated, status_code=201)
async def rotate_api_key(
    kid: str,
    body: ApiKeyRotate,
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    try:
        secret, key = await ApiKeyLifecycleService(uow).rotate_api_key(
            kid, identity.tenant_id, label=body.label, expires_at=body.expires_at
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "api_key.rotate_failed")
    return ApiKeyCreated(
        message="API key rotated. Store the secret now; it will not be shown again.",
        api_key=secret,
        key=ApiKeyPublic.model_validate(key),
    )

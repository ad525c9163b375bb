"""Tenant API: registration, login, current tenant.

- POST /tenants/register → create an active tenant, returns a token
- POST /tenants/login → email/password → access token
- GET /tenants/me → the tenant behind the Bearer token
"""

from fastapi import APIRouter, Depends, HTTPException

from tenantgate.auth.dependencies import TenantIdentity, get_current_tenant
from tenantgate.db.engine import get_uow
from tenantgate.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
)
from tenantgate.http_errors import internal_error
from tenantgate.repositories.unit_of_work import UnitOfWork
from tenantgate.schemas.tenant import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    TenantPublic,
    TokenInfo,
)
from tenantgate.services.tenant_auth_service import AuthResult, TenantAuthService

router = APIRouter(prefix="/tenants")


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        tenant=TenantPublic.model_validate(result.tenant),
        token=TokenInfo(accessToken=result.token, expiresIn=result.expires_in),
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, uow: UnitOfWork = Depends(get_uow)):
    try:
        result = await TenantAuthService(uow).register(body.name, body.email, body.password)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (ConfigurationError, StorageError) as e:
        raise internal_error(e, "tenant.register_failed")
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, uow: UnitOfWork = Depends(get_uow)):
    try:
        result = await TenantAuthService(uow).login(body.email, body.password)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except (ConfigurationError, StorageError) as e:
        raise internal_error(e, "tenant.login_error")
    return _auth_response(result)


@router.get("/me", response_model=TenantPublic)
async def get_me(
    identity: TenantIdentity = Depends(get_current_tenant),
    uow: UnitOfWork = Depends(get_uow),
):
    try:
        return await TenantAuthService(uow).get_tenant(identity.tenant_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "tenant.lookup_failed")

"""Customer sync: API-key authenticated.

POST /users/sync creates or updates one end customer of the calling
tenant. The tenant comes from the API key, never from the body.
"""

from fastapi import APIRouter, Depends, HTTPException

from tenantgate.auth.dependencies import require_api_key
from tenantgate.db.engine import get_uow
from tenantgate.errors import ConflictError, StorageError, ValidationError
from tenantgate.http_errors import internal_error
from tenantgate.repositories.unit_of_work import UnitOfWork
from tenantgate.schemas.customer import CustomerSyncRequest, CustomerSyncResponse, UserRead
from tenantgate.services.api_key_guard import ApiKeyIdentity
from tenantgate.services.customer_sync_service import CustomerSyncService

router = APIRouter(prefix="/users")


@router.post("/sync", response_model=CustomerSyncResponse)
async def sync_customer(
    body: CustomerSyncRequest,
    identity: ApiKeyIdentity = Depends(require_api_key),
    uow: UnitOfWork = Depends(get_uow),
):
    try:
        user = await CustomerSyncService(uow).sync_customer(
            identity.tenant_id,
            body.external_customer_id,
            name=body.name,
            email=body.email,
            phone=body.phone,
            status=body.status,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise internal_error(e, "customer.sync_failed")
    return CustomerSyncResponse(user=UserRead.model_validate(user))

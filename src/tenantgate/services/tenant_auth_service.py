"""Tenant registration, login and administrative status changes.

The service hashes passwords, enforces status gating and issues access
tokens. Login failures for an unknown email and for a wrong password raise
the same UnauthorizedError message so callers cannot probe which accounts
exist; the distinction is only kept in ``reason`` for the logs.
"""

from dataclasses import dataclass

import structlog

from tenantgate.auth.jwt import issue_token, token_ttl
from tenantgate.auth.password import hash_password, verify_password, verify_password_miss
from tenantgate.db.models import STATUSES, Tenant
from tenantgate.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from tenantgate.events.types import TENANT_REGISTERED, TENANT_STATUS_CHANGED
from tenantgate.repositories.unit_of_work import Stores, UnitOfWork

logger = structlog.get_logger()

INVALID_CREDENTIALS = "invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    tenant: Tenant
    token: str
    expires_in: int  # seconds


class TenantAuthService:
    """Business logic for tenant accounts."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def register(self, name: str, email: str, password: str) -> AuthResult:
        """Create an active tenant and log it in.

        The token is issued inside the transaction, so a missing signing
        key rolls the registration back instead of leaving an account the
        caller never got a token for.
        """
        password_hash, salt = hash_password(password)

        async def _register(stores: Stores) -> tuple[Tenant, str]:
            if await stores.tenants.get_by_email(email):
                raise ConflictError("tenant exists")
            try:
                tenant = await stores.tenants.create(
                    name=name, email=email, password=password_hash, salt=salt
                )
            except ConflictError as e:
                # Name collision, or an email registered concurrently.
                raise ConflictError("tenant exists", constraint=e.constraint) from e
            await stores.events.append(
                stream_id=f"tenant:{tenant.id}",
                event_type=TENANT_REGISTERED,
                data={"name": name, "email": email},
            )
            return tenant, issue_token(tenant.id, tenant.email)

        tenant, token = await self.uow.run(_register)
        logger.info("tenant.registered", tenant_id=tenant.id)
        return AuthResult(tenant=tenant, token=token, expires_in=_expires_in())

    async def login(self, email: str, password: str) -> AuthResult:
        async def _lookup(stores: Stores) -> Tenant:
            tenant = await stores.tenants.get_by_email(email)
            if tenant is None:
                verify_password_miss(password)
                raise UnauthorizedError(INVALID_CREDENTIALS, reason="unknown email")
            if tenant.status != "active":
                raise ForbiddenError("not active")
            if not verify_password(password, tenant.password, tenant.salt):
                raise UnauthorizedError(INVALID_CREDENTIALS, reason="wrong password")
            return tenant

        try:
            tenant = await self.uow.run(_lookup)
        except UnauthorizedError as e:
            logger.info("tenant.login_failed", reason=e.reason)
            raise
        except ForbiddenError:
            logger.info("tenant.login_refused", reason="not active")
            raise

        token = issue_token(tenant.id, tenant.email)
        logger.info("tenant.logged_in", tenant_id=tenant.id)
        return AuthResult(tenant=tenant, token=token, expires_in=_expires_in())

    async def get_tenant(self, tenant_id: int) -> Tenant:
        async def _get(stores: Stores) -> Tenant:
            tenant = await stores.tenants.get(tenant_id)
            if tenant is None:
                raise NotFoundError(f"tenant {tenant_id} not found")
            return tenant

        return await self.uow.run(_get)

    async def set_status(self, tenant_id: int, status: str) -> Tenant:
        """Administrative status change (active / inactive / suspended)."""
        if status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}")

        async def _set(stores: Stores) -> Tenant:
            tenant = await stores.tenants.get(tenant_id, for_update=True)
            if tenant is None:
                raise NotFoundError(f"tenant {tenant_id} not found")
            previous = tenant.status
            if previous == status:
                return tenant
            await stores.tenants.update(tenant, status=status)
            await stores.events.append(
                stream_id=f"tenant:{tenant.id}",
                event_type=TENANT_STATUS_CHANGED,
                data={"from": previous, "to": status},
            )
            return tenant

        tenant = await self.uow.run(_set)
        logger.info("tenant.status_set", tenant_id=tenant_id, status=status)
        return tenant


def _expires_in() -> int:
    return int(token_ttl().total_seconds())

"""Authenticate server-to-server requests by API key id and secret.

Every failure raises UnauthorizedError with the same public message, so a
caller cannot tell an unknown kid from a revoked key or a bad secret. The
distinguishing reason goes to the log only. A key only works while its
tenant is active; suspending the tenant shuts off its keys too.
"""

from dataclasses import dataclass

import structlog

from tenantgate.auth.password import verify_secret, verify_secret_miss
from tenantgate.db.models import as_utc, utcnow
from tenantgate.errors import UnauthorizedError
from tenantgate.repositories.unit_of_work import Stores, UnitOfWork

logger = structlog.get_logger()

INVALID_API_KEY = "invalid api key"


@dataclass(frozen=True)
class ApiKeyIdentity:
    """Who is calling: the owning tenant and the key that proved it."""

    tenant_id: int
    kid: str


class ApiKeyAuthGuard:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def authenticate(self, kid: str, secret: str) -> ApiKeyIdentity:
        if not kid or not secret:
            logger.info("api_key.auth_failed", reason="missing credentials")
            raise UnauthorizedError(INVALID_API_KEY, reason="missing credentials")

        async def _authenticate(stores: Stores) -> ApiKeyIdentity:
            key = await stores.api_keys.get_by_kid(kid)
            if key is None:
                verify_secret_miss(secret)
                raise UnauthorizedError(INVALID_API_KEY, reason="unknown key")
            if key.status != "active":
                raise UnauthorizedError(INVALID_API_KEY, reason="key inactive")
            now = utcnow()
            if key.expires_at is not None and as_utc(key.expires_at) <= now:
                raise UnauthorizedError(INVALID_API_KEY, reason="key inactive")
            if not verify_secret(secret, key.api_key_hash):
                raise UnauthorizedError(INVALID_API_KEY, reason="invalid secret")
            tenant = await stores.tenants.get(key.tenant_id)
            if tenant is None or tenant.status != "active":
                raise UnauthorizedError(INVALID_API_KEY, reason="tenant inactive")
            await stores.api_keys.update(key, last_used_at=now)
            return ApiKeyIdentity(tenant_id=key.tenant_id, kid=key.kid)

        try:
            return await self.uow.run(_authenticate)
        except UnauthorizedError as e:
            logger.info("api_key.auth_failed", kid=kid, reason=e.reason)
            raise

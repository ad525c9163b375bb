"""API key lifecycle: create, deactivate, remove, rotate, list.

Per-key state machine:

    active ──deactivate──▶ inactive
    active | inactive ──remove──▶ (row deleted)

There is no way back from inactive to active. Rotation deactivates the
old key and creates a new one whose ``rotated_from_key_id`` points at it.

At most one key per tenant may be active. The check-then-insert below
runs in one transaction with the tenant row locked (PostgreSQL serializes
concurrent creations on that lock), and the partial unique index
``uq_api_keys_one_active_per_tenant`` rejects anything that slips past;
both paths surface as ConflictError("active key exists").
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Optional

import structlog

from tenantgate.auth.keys import new_key_id, new_secret
from tenantgate.auth.password import hash_secret
from tenantgate.db.models import ENVIRONMENTS, Tenant, TenantApiKey, as_utc, utcnow
from tenantgate.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tenantgate.events.types import (
    API_KEY_CREATED,
    API_KEY_DEACTIVATED,
    API_KEY_REMOVED,
    API_KEY_ROTATED,
)
from tenantgate.repositories.unit_of_work import Stores, UnitOfWork

logger = structlog.get_logger()

ACTIVE_KEY_EXISTS = "active key exists"
TENANT_NOT_ACTIVE = "not active"

# Fresh kids generated after a collision on the unique kid index.
KID_ATTEMPTS = 3


def _is_kid_collision(error: ConflictError) -> bool:
    return "kid" in (error.constraint or "")


class ApiKeyLifecycleService:
    """Business logic for tenant API keys."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    # ─── Create ─────────────────────────────────────────

    async def create_api_key(
        self,
        tenant_id: int,
        label: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        environment: str = "production",
    ) -> tuple[str, TenantApiKey]:
        """Create the tenant's active key.

        Returns ``(raw_secret, key)``. The raw secret exists only in this
        return value; the stored row carries its hash.
        Tenants that are not active get ForbiddenError.
        """
        expires_at = _normalize_key_options(expires_at, environment)
        raw_secret = new_secret()
        secret_hash = hash_secret(raw_secret)

        async def _create(stores: Stores) -> TenantApiKey:
            await self._active_tenant(stores, tenant_id)
            if await stores.api_keys.find_active(tenant_id) is not None:
                raise ConflictError(ACTIVE_KEY_EXISTS)
            key = await self._insert_key(
                stores,
                tenant_id=tenant_id,
                secret_hash=secret_hash,
                label=label or "",
                environment=environment,
                expires_at=expires_at,
            )
            await stores.events.append(
                stream_id=f"api_key:{key.kid}",
                event_type=API_KEY_CREATED,
                data={"tenant_id": tenant_id, "kid": key.kid, "label": key.label},
            )
            return key

        key = await self._run_with_fresh_kids(_create)
        logger.info("api_key.created", tenant_id=tenant_id, kid=key.kid)
        return raw_secret, key

    # ─── Deactivate / remove ────────────────────────────

    async def deactivate_api_key(self, kid: str, tenant_id: int) -> None:
        """Set an owned key inactive. A second call is a no-op."""

        async def _deactivate(stores: Stores) -> bool:
            key = await self._owned_key(stores, kid, tenant_id)
            if key.status == "inactive":
                return False
            now = utcnow()
            await stores.api_keys.update(
                key, status="inactive", updated_at=now, revoked_at=now
            )
            await stores.events.append(
                stream_id=f"api_key:{kid}",
                event_type=API_KEY_DEACTIVATED,
                data={"tenant_id": tenant_id, "kid": kid},
            )
            return True

        if await self.uow.run(_deactivate):
            logger.info("api_key.deactivated", tenant_id=tenant_id, kid=kid)

    async def remove_api_key(self, kid: str, tenant_id: int) -> None:
        """Hard-delete an owned key.

        Keys rotated from this one keep existing; their back-reference is
        cleared first so the chain simply ends there.
        """

        async def _remove(stores: Stores) -> None:
            key = await self._owned_key(stores, kid, tenant_id)
            await stores.api_keys.detach_successors(key.id)
            await stores.api_keys.delete(key)
            await stores.events.append(
                stream_id=f"api_key:{kid}",
                event_type=API_KEY_REMOVED,
                data={"tenant_id": tenant_id, "kid": kid},
            )

        await self.uow.run(_remove)
        logger.info("api_key.removed", tenant_id=tenant_id, kid=kid)

    # ─── Rotate ─────────────────────────────────────────

    async def rotate_api_key(
        self,
        kid: str,
        tenant_id: int,
        label: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> tuple[str, TenantApiKey]:
        """Replace an owned key with a new active one, atomically.

        The old key is deactivated and the new key records it as
        ``rotated_from_key_id``. Fails with ConflictError when a different
        key of the tenant is the active one. Tenants that are not active get
        ForbiddenError.
        """
        expires_at = _normalize_key_options(expires_at, "production")
        raw_secret = new_secret()
        secret_hash = hash_secret(raw_secret)

        async def _rotate(stores: Stores) -> TenantApiKey:
            await self._active_tenant(stores, tenant_id)
            old = await self._owned_key(stores, kid, tenant_id)
            active = await stores.api_keys.find_active(tenant_id)
            if active is not None and active.id != old.id:
                raise ConflictError(ACTIVE_KEY_EXISTS)
            if old.status != "inactive":
                now = utcnow()
                await stores.api_keys.update(
                    old, status="inactive", updated_at=now, revoked_at=now
                )
            key = await self._insert_key(
                stores,
                tenant_id=tenant_id,
                secret_hash=secret_hash,
                label=old.label if label is None else label,
                environment=old.environment,
                expires_at=expires_at,
                rotated_from_key_id=old.id,
            )
            await stores.events.append(
                stream_id=f"api_key:{key.kid}",
                event_type=API_KEY_ROTATED,
                data={"tenant_id": tenant_id, "kid": key.kid, "rotated_from": kid},
            )
            return key

        key = await self._run_with_fresh_kids(_rotate)
        logger.info("api_key.rotated", tenant_id=tenant_id, kid=key.kid, rotated_from=kid)
        return raw_secret, key

    async def rotation_chain(self, kid: str, tenant_id: int) -> list[TenantApiKey]:
        """The key followed by every key it was rotated from, newest first."""

        async def _chain(stores: Stores) -> list[TenantApiKey]:
            key = await self._owned_key(stores, kid, tenant_id)
            chain = [key]
            seen = {key.id}
            while key.rotated_from_key_id is not None:
                previous = await stores.api_keys.get(key.rotated_from_key_id)
                if previous is None or previous.id in seen:
                    break
                chain.append(previous)
                seen.add(previous.id)
                key = previous
            return chain

        return await self.uow.run(_chain)

    # ─── List ───────────────────────────────────────────

    async def list_api_keys(
        self, tenant_id: int, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> list[TenantApiKey]:
        """Keys of one tenant in creation order; limit clamped to [1, 100]."""

        async def _list(stores: Stores) -> list[TenantApiKey]:
            page = await stores.api_keys.page_for_tenant(tenant_id, limit, offset)
            return page.items

        return await self.uow.run(_list)

    # ─── Helpers ────────────────────────────────────────

    async def _active_tenant(self, stores: Stores, tenant_id: int) -> Tenant:
        """Lock the tenant row; suspended or inactive tenants cannot mint keys."""
        tenant = await stores.tenants.get(tenant_id, for_update=True)
        if tenant is None:
            raise NotFoundError(f"tenant {tenant_id} not found")
        if tenant.status != "active":
            raise ForbiddenError(TENANT_NOT_ACTIVE)
        return tenant

    async def _owned_key(self, stores: Stores, kid: str, tenant_id: int) -> TenantApiKey:
        key = await stores.api_keys.get_by_kid(kid)
        if key is None:
            raise NotFoundError(f"api key {kid} not found")
        if key.tenant_id != tenant_id:
            raise ForbiddenError("key does not belong to tenant")
        return key

    async def _insert_key(
        self,
        stores: Stores,
        *,
        tenant_id: int,
        secret_hash: str,
        label: str,
        environment: str,
        expires_at: Optional[datetime],
        rotated_from_key_id: Optional[int] = None,
    ) -> TenantApiKey:
        try:
            return await stores.api_keys.create(
                tenant_id=tenant_id,
                kid=new_key_id(),
                api_key_hash=secret_hash,
                label=label,
                environment=environment,
                expires_at=expires_at,
                rotated_from_key_id=rotated_from_key_id,
            )
        except ConflictError as e:
            if _is_kid_collision(e):
                raise
            # A concurrent creation won the race past the active-key check.
            raise ConflictError(ACTIVE_KEY_EXISTS, constraint=e.constraint) from e

    async def _run_with_fresh_kids(
        self, fn: Callable[[Stores], Awaitable[TenantApiKey]]
    ) -> TenantApiKey:
        attempt = 1
        while True:
            try:
                return await self.uow.run(fn)
            except ConflictError as e:
                if not _is_kid_collision(e) or attempt >= KID_ATTEMPTS:
                    raise
                logger.warning("api_key.kid_collision", attempt=attempt)
                attempt += 1


def _normalize_key_options(
    expires_at: Optional[datetime], environment: str
) -> Optional[datetime]:
    """Validate options and return ``expires_at`` in UTC."""
    if environment not in ENVIRONMENTS:
        raise ValidationError(f"environment must be one of {', '.join(ENVIRONMENTS)}")
    if expires_at is None:
        return None
    expires_at = as_utc(expires_at)
    if expires_at <= utcnow():
        raise ValidationError("expires_at must be in the future")
    return expires_at

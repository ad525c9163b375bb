"""API key lifecycle: single active key, ownership, rotation."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tenantgate.auth.password import verify_secret
from tenantgate.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tenantgate.services import api_key_service
from tenantgate.services.api_key_service import (
    ACTIVE_KEY_EXISTS,
    KID_ATTEMPTS,
    TENANT_NOT_ACTIVE,
    ApiKeyLifecycleService,
)
from tenantgate.services.tenant_auth_service import TenantAuthService


async def _key(uow, kid):
    async def _get(stores):
        return await stores.api_keys.get_by_kid(kid)

    return await uow.run(_get)


# ═══════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_returns_secret_once(uow, tenant):
    secret, key = await ApiKeyLifecycleService(uow).create_api_key(
        tenant.tenant.id, label="ci"
    )
    assert key.status == "active"
    assert key.label == "ci"
    assert key.environment == "production"
    assert key.api_key_hash != secret
    assert verify_secret(secret, key.api_key_hash)


@pytest.mark.asyncio
async def test_second_create_conflicts(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    await service.create_api_key(tenant.tenant.id)
    with pytest.raises(ConflictError, match=ACTIVE_KEY_EXISTS):
        await service.create_api_key(tenant.tenant.id)


@pytest.mark.asyncio
async def test_concurrent_creates_one_wins(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    results = await asyncio.gather(
        service.create_api_key(tenant.tenant.id),
        service.create_api_key(tenant.tenant.id),
        return_exceptions=True,
    )
    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], ConflictError)

    keys = await service.list_api_keys(tenant.tenant.id)
    assert [k.status for k in keys] == ["active"]


@pytest.mark.asyncio
async def test_create_after_deactivate(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, first = await service.create_api_key(tenant.tenant.id)
    await service.deactivate_api_key(first.kid, tenant.tenant.id)
    _, second = await service.create_api_key(tenant.tenant.id)
    assert second.kid != first.kid


@pytest.mark.asyncio
async def test_create_for_unknown_tenant(uow):
    with pytest.raises(NotFoundError):
        await ApiKeyLifecycleService(uow).create_api_key(999)


@pytest.mark.asyncio
async def test_create_validates_options(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    with pytest.raises(ValidationError):
        await service.create_api_key(tenant.tenant.id, environment="qa")
    with pytest.raises(ValidationError):
        await service.create_api_key(
            tenant.tenant.id, expires_at=datetime.now(timezone.utc) - timedelta(days=1)
        )


@pytest.mark.asyncio
async def test_kid_collision_retries_with_fresh_kid(uow, tenant, other_tenant, monkeypatch):
    service = ApiKeyLifecycleService(uow)
    _, existing = await service.create_api_key(tenant.tenant.id)

    kids = iter([existing.kid, "kid_fresh"])
    monkeypatch.setattr(api_key_service, "new_key_id", lambda: next(kids))

    _, key = await service.create_api_key(other_tenant.tenant.id)
    assert key.kid == "kid_fresh"


@pytest.mark.asyncio
async def test_kid_collision_gives_up(uow, tenant, other_tenant, monkeypatch):
    service = ApiKeyLifecycleService(uow)
    _, existing = await service.create_api_key(tenant.tenant.id)

    calls = []

    def _same_kid():
        calls.append(1)
        return existing.kid

    monkeypatch.setattr(api_key_service, "new_key_id", _same_kid)
    with pytest.raises(ConflictError):
        await service.create_api_key(other_tenant.tenant.id)
    assert len(calls) == KID_ATTEMPTS


# ═══════════════════════════════════════════════════════════
# Deactivate / remove
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_deactivate_is_idempotent(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, key = await service.create_api_key(tenant.tenant.id)

    await service.deactivate_api_key(key.kid, tenant.tenant.id)
    await service.deactivate_api_key(key.kid, tenant.tenant.id)

    stored = await _key(uow, key.kid)
    assert stored.status == "inactive"
    assert stored.revoked_at is not None


@pytest.mark.asyncio
async def test_deactivate_unknown_key(uow, tenant):
    with pytest.raises(NotFoundError):
        await ApiKeyLifecycleService(uow).deactivate_api_key("kid_missing", tenant.tenant.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("deactivate_first", [False, True])
async def test_cross_tenant_access_forbidden(uow, tenant, other_tenant, deactivate_first):
    service = ApiKeyLifecycleService(uow)
    _, key = await service.create_api_key(tenant.tenant.id)
    if deactivate_first:
        await service.deactivate_api_key(key.kid, tenant.tenant.id)

    with pytest.raises(ForbiddenError):
        await service.deactivate_api_key(key.kid, other_tenant.tenant.id)
    with pytest.raises(ForbiddenError):
        await service.remove_api_key(key.kid, other_tenant.tenant.id)
    with pytest.raises(ForbiddenError):
        await service.rotate_api_key(key.kid, other_tenant.tenant.id)

    assert await _key(uow, key.kid) is not None


@pytest.mark.asyncio
async def test_suspended_tenant_cannot_create_or_rotate(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, key = await service.create_api_key(tenant.tenant.id)
    await service.deactivate_api_key(key.kid, tenant.tenant.id)
    await TenantAuthService(uow).set_status(tenant.tenant.id, "suspended")

    with pytest.raises(ForbiddenError, match=TENANT_NOT_ACTIVE):
        await service.create_api_key(tenant.tenant.id)
    with pytest.raises(ForbiddenError, match=TENANT_NOT_ACTIVE):
        await service.rotate_api_key(key.kid, tenant.tenant.id)

    keys = await service.list_api_keys(tenant.tenant.id)
    assert [k.kid for k in keys] == [key.kid]
    assert keys[0].status == "inactive"


@pytest.mark.asyncio
async def test_remove_deletes_row(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, key = await service.create_api_key(tenant.tenant.id)
    await service.remove_api_key(key.kid, tenant.tenant.id)

    assert await _key(uow, key.kid) is None
    with pytest.raises(NotFoundError):
        await service.remove_api_key(key.kid, tenant.tenant.id)


# ═══════════════════════════════════════════════════════════
# Rotate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_rotate_links_new_key_to_old(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    old_secret, old = await service.create_api_key(tenant.tenant.id, label="ci")
    new_secret, new = await service.rotate_api_key(old.kid, tenant.tenant.id)

    assert new.status == "active"
    assert new.label == "ci"
    assert new.rotated_from_key_id == old.id
    assert new_secret != old_secret
    assert (await _key(uow, old.kid)).status == "inactive"

    chain = await service.rotation_chain(new.kid, tenant.tenant.id)
    assert [k.kid for k in chain] == [new.kid, old.kid]


@pytest.mark.asyncio
async def test_rotate_inactive_key_when_none_active(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, old = await service.create_api_key(tenant.tenant.id)
    await service.deactivate_api_key(old.kid, tenant.tenant.id)

    _, new = await service.rotate_api_key(old.kid, tenant.tenant.id, label="renewed")
    assert new.status == "active"
    assert new.label == "renewed"


@pytest.mark.asyncio
async def test_rotate_conflicts_with_another_active_key(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, old = await service.create_api_key(tenant.tenant.id)
    await service.deactivate_api_key(old.kid, tenant.tenant.id)
    await service.create_api_key(tenant.tenant.id)

    with pytest.raises(ConflictError, match=ACTIVE_KEY_EXISTS):
        await service.rotate_api_key(old.kid, tenant.tenant.id)


@pytest.mark.asyncio
async def test_remove_middle_of_chain(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    _, first = await service.create_api_key(tenant.tenant.id)
    _, second = await service.rotate_api_key(first.kid, tenant.tenant.id)
    _, third = await service.rotate_api_key(second.kid, tenant.tenant.id)

    await service.remove_api_key(second.kid, tenant.tenant.id)

    chain = await service.rotation_chain(third.kid, tenant.tenant.id)
    assert [k.kid for k in chain] == [third.kid]


# ═══════════════════════════════════════════════════════════
# List
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_is_tenant_scoped_and_ordered(uow, tenant, other_tenant):
    service = ApiKeyLifecycleService(uow)
    _, k1 = await service.create_api_key(tenant.tenant.id)
    _, k2 = await service.rotate_api_key(k1.kid, tenant.tenant.id)
    await service.create_api_key(other_tenant.tenant.id)

    keys = await service.list_api_keys(tenant.tenant.id)
    assert [k.kid for k in keys] == [k1.kid, k2.kid]

    page = await service.list_api_keys(tenant.tenant.id, limit=1, offset=1)
    assert [k.kid for k in page] == [k2.kid]


@pytest.mark.asyncio
async def test_list_clamps_limit(uow, tenant):
    service = ApiKeyLifecycleService(uow)
    await service.create_api_key(tenant.tenant.id)
    assert len(await service.list_api_keys(tenant.tenant.id, limit=0)) == 1
    assert await service.list_api_keys(tenant.tenant.id, offset=-10) != []

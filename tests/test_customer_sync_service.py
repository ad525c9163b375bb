"""Customer sync: idempotent create-or-update with a guaranteed risk profile."""

import asyncio

import pytest

from tenantgate.errors import ValidationError
from tenantgate.repositories.stores import UserStore
from tenantgate.services.customer_sync_service import CustomerSyncService

CUSTOMER = {"name": "Jane Doe", "email": "jane@example.com", "phone": "5551234567"}


async def _counts(uow, tenant_id, user_id):
    async def _count(stores):
        return (
            await stores.users.count_for_tenant(tenant_id),
            await stores.risk_profiles.count_for_user(user_id),
        )

    return await uow.run(_count)


@pytest.mark.asyncio
async def test_first_sync_creates_user_and_profile(uow, tenant):
    tenant_id = tenant.tenant.id
    user = await CustomerSyncService(uow).sync_customer(tenant_id, "CUST001", **CUSTOMER)

    assert user.tenant_id == tenant_id
    assert user.external_customer_id == "CUST001"
    assert user.status == "active"
    assert await _counts(uow, tenant_id, user.id) == (1, 1)

    async def _profile(stores):
        return await stores.risk_profiles.get_by_user_id(user.id)

    assert (await uow.run(_profile)).risk_score == 0


@pytest.mark.asyncio
async def test_resync_updates_in_place(uow, tenant):
    service = CustomerSyncService(uow)
    tenant_id = tenant.tenant.id
    first = await service.sync_customer(tenant_id, "CUST001", **CUSTOMER)
    second = await service.sync_customer(
        tenant_id, "CUST001", **{**CUSTOMER, "name": "Jane Smith", "phone": "5559876543"}
    )

    assert second.id == first.id
    assert second.name == "Jane Smith"
    assert second.phone == "5559876543"
    assert second.status == "active"
    assert await _counts(uow, tenant_id, first.id) == (1, 1)


@pytest.mark.asyncio
async def test_status_changes_only_when_given(uow, tenant):
    service = CustomerSyncService(uow)
    tenant_id = tenant.tenant.id
    await service.sync_customer(tenant_id, "CUST001", **CUSTOMER, status="suspended")
    user = await service.sync_customer(tenant_id, "CUST001", **CUSTOMER)
    assert user.status == "suspended"


@pytest.mark.asyncio
async def test_same_external_id_under_two_tenants(uow, tenant, other_tenant):
    service = CustomerSyncService(uow)
    a = await service.sync_customer(tenant.tenant.id, "CUST001", **CUSTOMER)
    b = await service.sync_customer(other_tenant.tenant.id, "CUST001", **CUSTOMER)
    assert a.id != b.id


@pytest.mark.asyncio
async def test_missing_profile_is_backfilled(uow, tenant):
    tenant_id = tenant.tenant.id

    async def _orphan(stores):
        return await stores.users.create(
            tenant_id=tenant_id, external_customer_id="CUST001", **CUSTOMER
        )

    orphan = await uow.run(_orphan)
    assert await _counts(uow, tenant_id, orphan.id) == (1, 0)

    user = await CustomerSyncService(uow).sync_customer(tenant_id, "CUST001", **CUSTOMER)
    assert user.id == orphan.id
    assert await _counts(uow, tenant_id, user.id) == (1, 1)

    async def _events(stores):
        return await stores.events.read_stream(f"customer:{user.id}")

    types = [e.type for e in await uow.run(_events)]
    assert types == ["customer.updated", "risk_profile.backfilled"]


@pytest.mark.asyncio
async def test_concurrent_first_syncs_converge(uow, tenant):
    service = CustomerSyncService(uow)
    tenant_id = tenant.tenant.id
    a, b = await asyncio.gather(
        service.sync_customer(tenant_id, "CUST001", **CUSTOMER),
        service.sync_customer(tenant_id, "CUST001", **{**CUSTOMER, "name": "Other"}),
    )
    assert a.id == b.id
    assert await _counts(uow, tenant_id, a.id) == (1, 1)


@pytest.mark.asyncio
async def test_lost_insert_race_retries_as_update(uow, tenant, monkeypatch):
    """The lookup misses a row committed meanwhile; the retry updates it."""
    tenant_id = tenant.tenant.id
    service = CustomerSyncService(uow)
    existing = await service.sync_customer(tenant_id, "CUST001", **CUSTOMER)

    real_lookup = UserStore.get_by_external_id
    misses = []

    async def _stale_once(self, tid, external_id):
        if not misses:
            misses.append(external_id)
            return None
        return await real_lookup(self, tid, external_id)

    monkeypatch.setattr(UserStore, "get_by_external_id", _stale_once)
    user = await service.sync_customer(tenant_id, "CUST001", **{**CUSTOMER, "name": "Renamed"})

    assert misses == ["CUST001"]
    assert user.id == existing.id
    assert user.name == "Renamed"
    assert await _counts(uow, tenant_id, user.id) == (1, 1)


@pytest.mark.asyncio
async def test_failure_leaves_nothing_behind(uow, tenant, monkeypatch):
    from tenantgate.repositories.stores import RiskProfileStore

    async def _broken(self, **kwargs):
        raise ValidationError("profile rejected")

    monkeypatch.setattr(RiskProfileStore, "create", _broken)
    with pytest.raises(ValidationError):
        await CustomerSyncService(uow).sync_customer(tenant.tenant.id, "CUST001", **CUSTOMER)

    async def _lookup(stores):
        return await stores.users.get_by_external_id(tenant.tenant.id, "CUST001")

    assert await uow.run(_lookup) is None


@pytest.mark.asyncio
async def test_input_validation(uow, tenant):
    service = CustomerSyncService(uow)
    with pytest.raises(ValidationError):
        await service.sync_customer(tenant.tenant.id, "", **CUSTOMER)
    with pytest.raises(ValidationError):
        await service.sync_customer(0, "CUST001", **CUSTOMER)
    with pytest.raises(ValidationError):
        await service.sync_customer(tenant.tenant.id, "CUST001", **CUSTOMER, status="gone")

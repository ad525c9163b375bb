"""Customer sync over HTTP, authenticated by API key."""

import pytest
import pytest_asyncio

from tenantgate.services.api_key_service import ApiKeyLifecycleService
from tenantgate.services.tenant_auth_service import TenantAuthService

CUSTOMER = {
    "external_customer_id": "CUST001",
    "name": "Jane Doe",
    "email": "jane@example.com",
    "phone": "5551234567",
}


@pytest_asyncio.fixture()
async def api_key(uow, tenant):
    secret, key = await ApiKeyLifecycleService(uow).create_api_key(tenant.tenant.id)
    return key.kid, secret


@pytest.mark.asyncio
async def test_sync_with_body_credentials(client, tenant, api_key):
    kid, secret = api_key
    r = await client.post(
        "/api/v1/users/sync", json={"api_key_id": kid, "api_key": secret, **CUSTOMER}
    )
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["tenant_id"] == tenant.tenant.id
    assert user["external_customer_id"] == "CUST001"


@pytest.mark.asyncio
async def test_sync_with_header_credentials(client, api_key):
    kid, secret = api_key
    r = await client.post(
        "/api/v1/users/sync",
        json=CUSTOMER,
        headers={"X-API-Key-Id": kid, "X-API-Key": secret},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_resync_is_idempotent(client, api_key):
    kid, secret = api_key
    creds = {"api_key_id": kid, "api_key": secret}
    first = (await client.post("/api/v1/users/sync", json={**creds, **CUSTOMER})).json()
    second = (
        await client.post(
            "/api/v1/users/sync", json={**creds, **CUSTOMER, "phone": "5550000000"}
        )
    ).json()
    assert first["user"]["id"] == second["user"]["id"]
    assert second["user"]["phone"] == "5550000000"


@pytest.mark.asyncio
async def test_tenant_comes_from_key_not_body(client, tenant, other_tenant, api_key):
    kid, secret = api_key
    r = await client.post(
        "/api/v1/users/sync",
        json={"api_key_id": kid, "api_key": secret, "tenant_id": other_tenant.tenant.id, **CUSTOMER},
    )
    assert r.status_code == 200
    assert r.json()["user"]["tenant_id"] == tenant.tenant.id


@pytest.mark.asyncio
async def test_bad_credentials_look_the_same(client, uow, tenant, api_key):
    kid, secret = api_key
    unknown = await client.post(
        "/api/v1/users/sync", json={"api_key_id": "kid_missing", "api_key": secret, **CUSTOMER}
    )
    wrong = await client.post(
        "/api/v1/users/sync", json={"api_key_id": kid, "api_key": "tg_wrong", **CUSTOMER}
    )
    missing = await client.post("/api/v1/users/sync", json=CUSTOMER)

    await ApiKeyLifecycleService(uow).deactivate_api_key(kid, tenant.tenant.id)
    inactive = await client.post(
        "/api/v1/users/sync", json={"api_key_id": kid, "api_key": secret, **CUSTOMER}
    )

    responses = [unknown, wrong, missing, inactive]
    assert {r.status_code for r in responses} == {401}
    assert len({r.json()["detail"] for r in responses}) == 1


@pytest.mark.asyncio
async def test_sync_validation(client, api_key):
    kid, secret = api_key
    r = await client.post(
        "/api/v1/users/sync",
        json={"api_key_id": kid, "api_key": secret, **CUSTOMER, "phone": "123"},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_sync_refused_for_suspended_tenant(client, uow, tenant, api_key):
    kid, secret = api_key
    await TenantAuthService(uow).set_status(tenant.tenant.id, "suspended")

    r = await client.post(
        "/api/v1/users/sync", json={"api_key_id": kid, "api_key": secret, **CUSTOMER}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid api key"

    async def _count(stores):
        return await stores.users.count_for_tenant(tenant.tenant.id)

    assert await uow.run(_count) == 0

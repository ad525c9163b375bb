"""Tenant HTTP API: register, login, me."""

import uuid

import pytest

PASSWORD = "Str0ng!Pass"


def _tenant_body(**overrides):
    suffix = uuid.uuid4().hex[:8]
    body = {"name": f"Acme {suffix}", "email": f"a-{suffix}@acme.com", "password": PASSWORD}
    body.update(overrides)
    return body


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register(client):
    body = _tenant_body()
    r = await client.post("/api/v1/tenants/register", json=body)
    assert r.status_code == 201
    data = r.json()
    assert data["tenant"]["email"] == body["email"]
    assert data["tenant"]["status"] == "active"
    assert data["token"]["tokenType"] == "Bearer"
    assert data["token"]["expiresIn"] == 3600
    assert data["token"]["accessToken"]
    assert "password" not in data["tenant"]
    assert "salt" not in data["tenant"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    body = _tenant_body()
    r1 = await client.post("/api/v1/tenants/register", json=body)
    assert r1.status_code == 201
    r2 = await client.post("/api/v1/tenants/register", json={**body, "name": "Someone else"})
    assert r2.status_code == 409
    assert r2.json()["detail"] == "tenant exists"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("name", "Ab"),
        ("email", "not-an-email"),
        ("password", "Sh0rt!"),
        ("password", "nouppercase1!"),
        ("password", "NoDigits!!"),
        ("password", "NoSpecial123"),
    ],
)
async def test_register_validation(client, field, value):
    r = await client.post("/api/v1/tenants/register", json=_tenant_body(**{field: value}))
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login(client):
    body = _tenant_body()
    registered = (await client.post("/api/v1/tenants/register", json=body)).json()

    r = await client.post(
        "/api/v1/tenants/login", json={"email": body["email"], "password": PASSWORD}
    )
    assert r.status_code == 200
    data = r.json()
    assert data["tenant"]["id"] == registered["tenant"]["id"]
    assert data["token"]["accessToken"]


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(client):
    body = _tenant_body()
    await client.post("/api/v1/tenants/register", json=body)

    wrong_password = await client.post(
        "/api/v1/tenants/login", json={"email": body["email"], "password": "Wr0ng!Pass"}
    )
    unknown_email = await client.post(
        "/api/v1/tenants/login", json={"email": "nobody@acme.com", "password": PASSWORD}
    )
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


@pytest.mark.asyncio
async def test_login_inactive_tenant(client, uow):
    from tenantgate.services.tenant_auth_service import TenantAuthService

    body = _tenant_body()
    registered = (await client.post("/api/v1/tenants/register", json=body)).json()
    await TenantAuthService(uow).set_status(registered["tenant"]["id"], "suspended")

    r = await client.post(
        "/api/v1/tenants/login", json={"email": body["email"], "password": PASSWORD}
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "not active"


# ═══════════════════════════════════════════════════════════
# Current tenant
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client):
    body = _tenant_body()
    token = (await client.post("/api/v1/tenants/register", json=body)).json()["token"]

    r = await client.get(
        "/api/v1/tenants/me", headers={"Authorization": f"Bearer {token['accessToken']}"}
    )
    assert r.status_code == 200
    assert r.json()["email"] == body["email"]


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/tenants/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_bad_token(client):
    r = await client.get("/api/v1/tenants/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401

"""tenantgate CLI: manage a tenant account, its API keys and customers.

Usage:
    tenantgate register "Acme" a@acme.com            # Create a tenant (prompts for password)
    tenantgate login a@acme.com                      # Prints an access token
    export TENANTGATE_TOKEN=...                      # Use it for the commands below
    tenantgate keys create --label ci                # Secret is shown once
    tenantgate keys list
    tenantgate keys deactivate kid_...
    tenantgate keys rotate kid_...
    tenantgate keys remove kid_...
    tenantgate customers sync CUST001 --name ... --email ... --phone ...
    tenantgate admin init-db                         # Server-side, talks to the database
    tenantgate admin set-status 3 suspended

Credentials are never kept in module state: the access token lives on the
ApiSession built for one invocation and is handed to every request.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import click
import httpx

from tenantgate import __version__

# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


@dataclass
class ApiSession:
    """Where to send requests and which token to send with them."""

    base_url: str = DEFAULT_API_URL
    token: Optional[str] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    def client(self, authenticated: bool = True) -> httpx.AsyncClient:
        headers = {}
        if authenticated:
            if not self.token:
                _fail("Not logged in. Pass --token or set TENANTGATE_TOKEN.")
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url.rstrip("/"),
            headers=headers,
            timeout=30.0,
            transport=self.transport,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run a coroutine from a synchronous click handler.

    Inside an already running loop (CliRunner under an async test) the
    coroutine is run on a worker thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _fail(message: str):
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _check(r: httpx.Response) -> dict:
    """Return the JSON body, or exit with the server's error detail."""
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail", r.text)
        except json.JSONDecodeError:
            detail = r.text
        _fail(f"{r.status_code}: {detail}")
    return r.json()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "-")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    return {"active": "green", "inactive": "yellow", "suspended": "red"}.get(status, "white")


def _print_created_key(body: dict):
    key = body["key"]
    click.secho(body["message"], fg="green")
    click.echo(f"  kid:    {key['kid']}")
    click.echo(f"  secret: {body['api_key']}")
    if key.get("rotated_from_key_id"):
        click.echo(f"  replaces key #{key['rotated_from_key_id']}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tenantgate")
@click.option(
    "--api-url",
    envvar="TENANTGATE_API_URL",
    default=DEFAULT_API_URL,
    show_default=True,
    help="Base URL of the tenantgate server",
)
@click.option("--token", envvar="TENANTGATE_TOKEN", help="Access token from `tenantgate login`")
@click.pass_context
def cli(ctx: click.Context, api_url: str, token: Optional[str]):
    """tenantgate: tenant accounts, API keys and customer sync."""
    if ctx.obj is None:
        ctx.obj = ApiSession(base_url=api_url, token=token)


# ---------------------------------------------------------------------------
# tenantgate register / login
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.argument("email")
@click.password_option()
@click.pass_obj
def register(session: ApiSession, name: str, email: str, password: str):
    """Register a tenant and print its access token."""
    _run(_register_impl(session, name, email, password))


async def _register_impl(session: ApiSession, name: str, email: str, password: str):
    async with session.client(authenticated=False) as c:
        r = await c.post(
            "/api/v1/tenants/register",
            json={"name": name, "email": email, "password": password},
        )
    body = _check(r)
    tenant = body["tenant"]
    click.secho(f"Registered tenant #{tenant['id']} ({tenant['name']})", fg="green")
    click.echo(f"export TENANTGATE_TOKEN={body['token']['accessToken']}")


@cli.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
@click.option("--token-only", is_flag=True, help="Print the bare token")
@click.pass_obj
def login(session: ApiSession, email: str, password: str, token_only: bool):
    """Log in and print an access token."""
    _run(_login_impl(session, email, password, token_only))


async def _login_impl(session: ApiSession, email: str, password: str, token_only: bool):
    async with session.client(authenticated=False) as c:
        r = await c.post("/api/v1/tenants/login", json={"email": email, "password": password})
    body = _check(r)
    token = body["token"]["accessToken"]
    if token_only:
        click.echo(token)
        return
    expires_min = body["token"]["expiresIn"] // 60
    click.secho(f"Logged in as {body['tenant']['email']} (expires in {expires_min} min)", fg="green")
    click.echo(f"export TENANTGATE_TOKEN={token}")


@cli.command()
@click.pass_obj
def me(session: ApiSession):
    """Show the tenant behind the current token."""
    _run(_me_impl(session))


async def _me_impl(session: ApiSession):
    async with session.client() as c:
        r = await c.get("/api/v1/tenants/me")
    click.echo(_pretty_json(_check(r)))


# ---------------------------------------------------------------------------
# tenantgate keys ...
# ---------------------------------------------------------------------------


@cli.group()
def keys():
    """Create, list, deactivate, rotate and remove API keys."""


@keys.command("create")
@click.option("--label", "-l", help="Free-form label")
@click.option("--expires-at", type=click.DateTime(), help="Expiry (UTC)")
@click.option(
    "--environment",
    "-e",
    type=click.Choice(["production", "staging", "development"]),
    default="production",
    show_default=True,
)
@click.pass_obj
def keys_create(
    session: ApiSession, label: Optional[str], expires_at: Optional[datetime], environment: str
):
    """Create the tenant's active key. The secret is shown once."""
    _run(_keys_create_impl(session, label, expires_at, environment))


async def _keys_create_impl(
    session: ApiSession, label: Optional[str], expires_at: Optional[datetime], environment: str
):
    body: dict = {"environment": environment}
    if label:
        body["label"] = label
    if expires_at:
        body["expires_at"] = expires_at.isoformat()
    async with session.client() as c:
        r = await c.post("/api/v1/tenants/api-keys", json=body)
    _print_created_key(_check(r))


@keys.command("list")
@click.option("--limit", "-n", default=50, show_default=True)
@click.option("--offset", default=0)
@click.pass_obj
def keys_list(session: ApiSession, limit: int, offset: int):
    """List API keys (secrets are never shown)."""
    _run(_keys_list_impl(session, limit, offset))


async def _keys_list_impl(session: ApiSession, limit: int, offset: int):
    async with session.client() as c:
        r = await c.get("/api/v1/tenants/api-keys", params={"limit": limit, "offset": offset})
    body = _check(r)
    rows = body["data"]
    if not rows:
        click.echo("No API keys.")
        return
    for row in rows:
        row["status"] = click.style(row["status"], fg=_status_color(row["status"]))
    _print_table(rows, [
        ("KID", "kid", 28),
        ("Status", "status", 19),
        ("Label", "label", 20),
        ("Env", "environment", 11),
        ("Last used", "last_used_at", 26),
    ])


@keys.command("deactivate")
@click.argument("kid")
@click.pass_obj
def keys_deactivate(session: ApiSession, kid: str):
    """Deactivate a key. Deactivated keys cannot be reactivated."""
    _run(_keys_simple_impl(session, "POST", kid, {"status": "inactive"}))


@keys.command("remove")
@click.argument("kid")
@click.confirmation_option(prompt="Permanently delete this key?")
@click.pass_obj
def keys_remove(session: ApiSession, kid: str):
    """Delete a key."""
    _run(_keys_simple_impl(session, "DELETE", kid, None))


async def _keys_simple_impl(session: ApiSession, method: str, kid: str, body: Optional[dict]):
    async with session.client() as c:
        r = await c.request(method, f"/api/v1/tenants/api-keys/{kid}", json=body)
    click.secho(_check(r)["message"], fg="green")


@keys.command("rotate")
@click.argument("kid")
@click.option("--label", "-l", help="Label for the new key (default: keep)")
@click.option("--expires-at", type=click.DateTime(), help="Expiry of the new key (UTC)")
@click.pass_obj
def keys_rotate(
    session: ApiSession, kid: str, label: Optional[str], expires_at: Optional[datetime]
):
    """Replace a key with a new one. The old key is deactivated."""
    _run(_keys_rotate_impl(session, kid, label, expires_at))


async def _keys_rotate_impl(
    session: ApiSession, kid: str, label: Optional[str], expires_at: Optional[datetime]
):
    body: dict = {}
    if label:
        body["label"] = label
    if expires_at:
        body["expires_at"] = expires_at.isoformat()
    async with session.client() as c:
        r = await c.post(f"/api/v1/tenants/api-keys/{kid}/rotate", json=body)
    _print_created_key(_check(r))


# ---------------------------------------------------------------------------
# tenantgate customers sync
# ---------------------------------------------------------------------------


@cli.group()
def customers():
    """End-customer sync (authenticated by API key)."""


@customers.command("sync")
@click.argument("external_customer_id")
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.option("--phone", required=True)
@click.option("--key-id", envvar="TENANTGATE_API_KEY_ID", required=True, help="API key kid")
@click.option("--key", "secret", envvar="TENANTGATE_API_KEY", required=True, help="API key secret")
@click.pass_obj
def customers_sync(
    session: ApiSession,
    external_customer_id: str,
    name: str,
    email: str,
    phone: str,
    key_id: str,
    secret: str,
):
    """Create or update one customer of the key's tenant."""
    _run(_customers_sync_impl(session, external_customer_id, name, email, phone, key_id, secret))


async def _customers_sync_impl(
    session: ApiSession,
    external_customer_id: str,
    name: str,
    email: str,
    phone: str,
    key_id: str,
    secret: str,
):
    async with session.client(authenticated=False) as c:
        r = await c.post(
            "/api/v1/users/sync",
            json={
                "api_key_id": key_id,
                "api_key": secret,
                "external_customer_id": external_customer_id,
                "name": name,
                "email": email,
                "phone": phone,
            },
        )
    user = _check(r)["user"]
    click.secho(f"Synced customer {user['external_customer_id']} (user #{user['id']})", fg="green")


# ---------------------------------------------------------------------------
# tenantgate admin ... (server-side, uses TENANTGATE_DATABASE_URL)
# ---------------------------------------------------------------------------


@cli.group()
def admin():
    """Operator commands that talk to the database directly."""


@admin.command("init-db")
def admin_init_db():
    """Create all tables (development; use alembic upgrade in production)."""
    _run(_init_db_impl())


async def _init_db_impl():
    from tenantgate.db.engine import engine
    from tenantgate.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    click.secho("Database tables created.", fg="green")


@admin.command("set-status")
@click.argument("tenant_id", type=int)
@click.argument("status", type=click.Choice(["active", "inactive", "suspended"]))
def admin_set_status(tenant_id: int, status: str):
    """Change a tenant's status. Non-active tenants cannot log in."""
    _run(_set_status_impl(tenant_id, status))


async def _set_status_impl(tenant_id: int, status: str):
    from tenantgate.db.engine import engine, get_uow
    from tenantgate.errors import NotFoundError
    from tenantgate.services.tenant_auth_service import TenantAuthService

    try:
        tenant = await TenantAuthService(get_uow()).set_status(tenant_id, status)
    except NotFoundError as e:
        _fail(str(e))
    finally:
        await engine.dispose()
    click.secho(f"Tenant #{tenant.id} is now {tenant.status}", fg=_status_color(tenant.status))


if __name__ == "__main__":
    cli()

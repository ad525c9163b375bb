"""Entity stores: tenants, API keys, end customers, risk profiles.

Each store owns one table and is bound to the session of the unit of work
that built it. Stores compose a generic ``Store`` rather than inheriting
from a base repository; they add lookups by natural key and nothing else.
Business rules (single active key, ownership, idempotent sync) live in the
services.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.models import RiskProfile, Tenant, TenantApiKey, User, utcnow
from tenantgate.repositories.base import Page, Store, paginate, translate_errors


class TenantStore:
    def __init__(self, session: AsyncSession):
        self.rows = Store(session, Tenant)

    async def create(
        self,
        *,
        name: str,
        email: str,
        password: str,
        salt: str,
        status: str = "active",
    ) -> Tenant:
        now = utcnow()
        tenant = Tenant(
            name=name,
            email=email,
            password=password,
            salt=salt,
            status=status,
            created_at=now,
            updated_at=now,
        )
        return await self.rows.add(tenant)

    async def get(self, tenant_id: int, *, for_update: bool = False) -> Optional[Tenant]:
        return await self.rows.get(tenant_id, for_update=for_update)

    async def get_by_email(self, email: str) -> Optional[Tenant]:
        return await self.rows.find_one(Tenant.email == email)

    async def update(self, tenant: Tenant, **changes: Any) -> Tenant:
        changes.setdefault("updated_at", utcnow())
        return await self.rows.update(tenant, **changes)


class ApiKeyStore:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rows = Store(session, TenantApiKey)

    async def create(
        self,
        *,
        tenant_id: int,
        kid: str,
        api_key_hash: str,
        label: str = "",
        environment: str = "production",
        expires_at: Optional[datetime] = None,
        rotated_from_key_id: Optional[int] = None,
    ) -> TenantApiKey:
        now = utcnow()
        key = TenantApiKey(
            tenant_id=tenant_id,
            kid=kid,
            api_key_hash=api_key_hash,
            label=label,
            environment=environment,
            status="active",
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
            last_used_at=None,
            revoked_at=None,
            rotated_from_key_id=rotated_from_key_id,
        )
        return await self.rows.add(key)

    async def get(self, key_id: int) -> Optional[TenantApiKey]:
        return await self.rows.get(key_id)

    async def get_by_kid(self, kid: str) -> Optional[TenantApiKey]:
        return await self.rows.find_one(TenantApiKey.kid == kid)

    async def list_for_tenant(self, tenant_id: int) -> list[TenantApiKey]:
        return await self.rows.find_all(TenantApiKey.tenant_id == tenant_id)

    async def find_active(self, tenant_id: int) -> Optional[TenantApiKey]:
        return await self.rows.find_one(
            TenantApiKey.tenant_id == tenant_id, TenantApiKey.status == "active"
        )

    async def page_for_tenant(
        self, tenant_id: int, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> Page[TenantApiKey]:
        return await paginate(
            self.rows, TenantApiKey.tenant_id == tenant_id, limit=limit, offset=offset
        )

    async def update(self, key: TenantApiKey, **changes: Any) -> TenantApiKey:
        return await self.rows.update(key, **changes)

    async def delete(self, key: TenantApiKey) -> None:
        await self.rows.delete(key)

    async def detach_successors(self, key_id: int) -> None:
        """Clear rotated_from_key_id on keys that point at ``key_id``."""
        stmt = (
            update(TenantApiKey)
            .where(TenantApiKey.rotated_from_key_id == key_id)
            .values(rotated_from_key_id=None)
            .execution_options(synchronize_session="fetch")
        )
        with translate_errors("update tenants_api_keys"):
            await self.session.execute(stmt)


class UserStore:
    def __init__(self, session: AsyncSession):
        self.rows = Store(session, User)

    async def create(
        self,
        *,
        tenant_id: int,
        external_customer_id: str,
        name: str,
        email: str,
        phone: str,
        status: str = "active",
    ) -> User:
        now = utcnow()
        user = User(
            tenant_id=tenant_id,
            external_customer_id=external_customer_id,
            name=name,
            email=email,
            phone=phone,
            status=status,
            created_at=now,
            updated_at=now,
        )
        return await self.rows.add(user)

    async def get(self, user_id: int) -> Optional[User]:
        return await self.rows.get(user_id)

    async def get_by_external_id(
        self, tenant_id: int, external_customer_id: str
    ) -> Optional[User]:
        return await self.rows.find_one(
            User.tenant_id == tenant_id,
            User.external_customer_id == external_customer_id,
        )

    async def page_for_tenant(
        self, tenant_id: int, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> Page[User]:
        return await paginate(self.rows, User.tenant_id == tenant_id, limit=limit, offset=offset)

    async def count_for_tenant(self, tenant_id: int) -> int:
        return await self.rows.count(User.tenant_id == tenant_id)

    async def update(self, user: User, **changes: Any) -> User:
        changes.setdefault("updated_at", utcnow())
        return await self.rows.update(user, **changes)


class RiskProfileStore:
    def __init__(self, session: AsyncSession):
        self.rows = Store(session, RiskProfile)

    async def create(self, *, user_id: int, risk_score: int = 0) -> RiskProfile:
        now = utcnow()
        profile = RiskProfile(
            user_id=user_id, risk_score=risk_score, created_at=now, updated_at=now
        )
        return await self.rows.add(profile)

    async def get_by_user_id(self, user_id: int) -> Optional[RiskProfile]:
        return await self.rows.find_one(RiskProfile.user_id == user_id)

    async def count_for_user(self, user_id: int) -> int:
        return await self.rows.count(RiskProfile.user_id == user_id)

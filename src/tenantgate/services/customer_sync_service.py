"""Idempotent create-or-update of a tenant's end customers.

Learn: A sync writes the user row and its risk profile in one transaction, so a
committed user always has a profile. Re-syncing the same
``(tenant_id, external_customer_id)`` updates the existing row instead of
creating a second one, and heals a user whose profile went missing.

Two concurrent first syncs of the same customer race on the unique natural
key. The loser's insert fails with ConflictError, its transaction rolls
back, and the sync is retried once; the retry finds the winner's row and
takes the update path.
"""

from typing import Optional

import structlog

from tenantgate.db.models import STATUSES, User
from tenantgate.errors import ConflictError, ValidationError
from tenantgate.events.types import (
    CUSTOMER_CREATED,
    CUSTOMER_UPDATED,
    RISK_PROFILE_BACKFILLED,
)
from tenantgate.repositories.unit_of_work import Stores, UnitOfWork

logger = structlog.get_logger()

DEFAULT_RISK_SCORE = 0


class CustomerSyncService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def sync_customer(
        self,
        tenant_id: int,
        external_customer_id: str,
        name: str,
        email: str,
        phone: str,
        status: Optional[str] = None,
    ) -> User:
        """Create or update one customer and guarantee its risk profile."""
        if not tenant_id:
            raise ValidationError("tenant id is required")
        if not external_customer_id:
            raise ValidationError("external customer id is required")
        if status is not None and status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}")

        async def _sync(stores: Stores) -> tuple[User, bool]:
            user = await stores.users.get_by_external_id(tenant_id, external_customer_id)
            if user is None:
                user = await stores.users.create(
                    tenant_id=tenant_id,
                    external_customer_id=external_customer_id,
                    name=name,
                    email=email,
                    phone=phone,
                    status=status or "active",
                )
                await stores.risk_profiles.create(
                    user_id=user.id, risk_score=DEFAULT_RISK_SCORE
                )
                await stores.events.append(
                    stream_id=f"customer:{user.id}",
                    event_type=CUSTOMER_CREATED,
                    data={"tenant_id": tenant_id, "external_customer_id": external_customer_id},
                )
                return user, True

            changes = {"name": name, "email": email, "phone": phone}
            if status is not None:
                changes["status"] = status
            await stores.users.update(user, **changes)
            await stores.events.append(
                stream_id=f"customer:{user.id}",
                event_type=CUSTOMER_UPDATED,
                data={"tenant_id": tenant_id, "external_customer_id": external_customer_id},
            )
            if await stores.risk_profiles.get_by_user_id(user.id) is None:
                await stores.risk_profiles.create(
                    user_id=user.id, risk_score=DEFAULT_RISK_SCORE
                )
                await stores.events.append(
                    stream_id=f"customer:{user.id}",
                    event_type=RISK_PROFILE_BACKFILLED,
                    data={"user_id": user.id},
                )
                logger.warning("customer.risk_profile_backfilled", user_id=user.id)
            return user, False

        try:
            user, created = await self.uow.run(_sync)
        except ConflictError:
            logger.info(
                "customer.sync_raced",
                tenant_id=tenant_id,
                external_customer_id=external_customer_id,
            )
            user, created = await self.uow.run(_sync)

        logger.info(
            "customer.synced",
            tenant_id=tenant_id,
            user_id=user.id,
            created=created,
        )
        return user

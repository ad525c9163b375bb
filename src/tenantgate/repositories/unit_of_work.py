"""Unit of work: one transaction, one set of stores.

Learn: ``UnitOfWork.run(fn)`` opens a session, begins a transaction, builds a
fresh ``Stores`` bundle bound to that session and awaits ``fn(stores)``.
On success the transaction commits; on any exception (including
cancellation and an expired deadline) it rolls back and the exception
propagates. Stores never outlive the ``run`` call that created them.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantgate.events.store import EventStore
from tenantgate.repositories.base import translate_errors
from tenantgate.repositories.stores import (
    ApiKeyStore,
    RiskProfileStore,
    TenantStore,
    UserStore,
)

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class Stores:
    """Transaction-scoped store instances."""

    session: AsyncSession
    tenants: TenantStore
    api_keys: ApiKeyStore
    users: UserStore
    risk_profiles: RiskProfileStore
    events: EventStore


def build_stores(session: AsyncSession) -> Stores:
    return Stores(
        session=session,
        tenants=TenantStore(session),
        api_keys=ApiKeyStore(session),
        users=UserStore(session),
        risk_profiles=RiskProfileStore(session),
        events=EventStore(session),
    )


class UnitOfWork:
    """Runs callables inside a single database transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.timeout = timeout

    async def run(
        self,
        fn: Callable[[Stores], Awaitable[T]],
        *,
        timeout: Optional[float] = None,
    ) -> T:
        """Await ``fn(stores)`` and commit, or roll back on any exception.

        ``timeout`` (seconds) overrides the default deadline; when it
        expires ``TimeoutError`` is raised and nothing is committed.
        """
        deadline = timeout if timeout is not None else self.timeout
        async with self.session_factory() as session:
            with translate_errors("begin"):
                await session.begin()
            try:
                if deadline is None:
                    result = await fn(build_stores(session))
                else:
                    result = await asyncio.wait_for(fn(build_stores(session)), deadline)
                with translate_errors("commit"):
                    await session.commit()
            except BaseException:
                await self._rollback(session)
                raise
            return result

    @staticmethod
    async def _rollback(session: AsyncSession) -> None:
        try:
            await session.rollback()
        except SQLAlchemyError:
            # The original exception is what the caller needs; the connection
            # is discarded when the session closes.
            logger.warning("uow.rollback_failed", exc_info=True)

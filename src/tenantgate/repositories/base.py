"""Generic store over one ORM model, plus pagination helpers.

Learn: Entity stores wrap a ``Store[Model]`` instead of subclassing a base
repository, and pagination is a plain function that works on any store.
All database errors are translated here: integrity violations become
ConflictError, anything else from SQLAlchemy becomes StorageError.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.models import Base
from tenantgate.errors import ConflictError, StorageError

ModelT = TypeVar("ModelT", bound=Base)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def violated_constraint(exc: IntegrityError) -> str:
    """Best-effort name of the constraint behind an IntegrityError.

    asyncpg exposes ``constraint_name`` on the driver exception; SQLite
    only has the message ("UNIQUE constraint failed: table.column").
    """
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    return str(orig if orig is not None else exc)


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Convert SQLAlchemy exceptions raised inside the block."""
    try:
        yield
    except IntegrityError as e:
        raise ConflictError(
            f"{action}: duplicate or invalid reference",
            constraint=violated_constraint(e),
        ) from e
    except SQLAlchemyError as e:
        raise StorageError(f"{action} failed") from e


def normalize_pagination(
    limit: Optional[int] = None, offset: Optional[int] = None
) -> tuple[int, int]:
    """Clamp limit to [1, MAX_LIMIT] and offset to >= 0."""
    limit = DEFAULT_LIMIT if limit is None else limit
    offset = 0 if offset is None else offset
    return min(max(limit, 1), MAX_LIMIT), max(offset, 0)


@dataclass
class Page(Generic[ModelT]):
    items: list[ModelT]
    limit: int
    offset: int

    @property
    def count(self) -> int:
        return len(self.items)


class Store(Generic[ModelT]):
    """CRUD and lookups for one model, bound to one session."""

    def __init__(self, session: AsyncSession, model: type[ModelT]):
        self.session = session
        self.model = model

    async def get(self, pk: Any, *, for_update: bool = False) -> Optional[ModelT]:
        with translate_errors(f"get {self.model.__tablename__}"):
            return await self.session.get(self.model, pk, with_for_update=for_update)

    async def find_one(
        self, *criteria: ColumnElement[bool], for_update: bool = False
    ) -> Optional[ModelT]:
        q = select(self.model).where(*criteria).limit(1)
        if for_update:
            q = q.with_for_update()
        with translate_errors(f"select {self.model.__tablename__}"):
            result = await self.session.execute(q)
        return result.scalars().first()

    async def find_all(
        self,
        *criteria: ColumnElement[bool],
        order_by: Any = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[ModelT]:
        q = select(self.model).where(*criteria)
        q = q.order_by(order_by if order_by is not None else self.model.id)
        if limit is not None:
            q = q.limit(limit)
        if offset:
            q = q.offset(offset)
        with translate_errors(f"select {self.model.__tablename__}"):
            result = await self.session.execute(q)
        return list(result.scalars().all())

    async def count(self, *criteria: ColumnElement[bool]) -> int:
        q = select(func.count()).select_from(self.model).where(*criteria)
        with translate_errors(f"count {self.model.__tablename__}"):
            result = await self.session.execute(q)
        return int(result.scalar_one())

    async def add(self, obj: ModelT) -> ModelT:
        self.session.add(obj)
        await self.flush(f"insert {self.model.__tablename__}")
        return obj

    async def update(self, obj: ModelT, **changes: Any) -> ModelT:
        for field, value in changes.items():
            setattr(obj, field, value)
        await self.flush(f"update {self.model.__tablename__}")
        return obj

    async def delete(self, obj: ModelT) -> None:
        await self.session.delete(obj)
        await self.flush(f"delete {self.model.__tablename__}")

    async def flush(self, action: str = "flush") -> None:
        with translate_errors(action):
            await self.session.flush()


async def paginate(
    store: Store[ModelT],
    *criteria: ColumnElement[bool],
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    order_by: Any = None,
) -> Page[ModelT]:
    """One page of ``store`` rows matching ``criteria``, in stable order."""
    limit, offset = normalize_pagination(limit, offset)
    items = await store.find_all(*criteria, order_by=order_by, limit=limit, offset=offset)
    return Page(items=items, limit=limit, offset=offset)

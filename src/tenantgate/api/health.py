"""Health check endpoint.

Reports server version and whether the database (and Redis, when the
rate limiter is connected) answers.
"""

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tenantgate import __version__
from tenantgate.db.engine import get_uow
from tenantgate.redis_pool import get_redis
from tenantgate.repositories.unit_of_work import UnitOfWork

router = APIRouter()


@router.get("/health")
async def health_check(uow: UnitOfWork = Depends(get_uow)):
    checks = {"server": "ok", "version": __version__}

    try:
        async with uow.session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {type(e).__name__}"

    redis = get_redis()
    if redis is not None:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except RedisError as e:
            checks["redis"] = f"error: {type(e).__name__}"

    healthy = all(v == "ok" for k, v in checks.items() if k != "version")
    return {"status": "healthy" if healthy else "degraded", **checks}

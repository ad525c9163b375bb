"""Shared handling for failures the caller cannot act on."""

import structlog
from fastapi import HTTPException

from tenantgate.errors import TenantGateError

logger = structlog.get_logger()

INTERNAL_ERROR = "internal server error"


def internal_error(exc: TenantGateError, event: str) -> HTTPException:
    """Log a storage or configuration failure and build a generic 500.

    The original cause stays in the log; the response body never carries it.
    """
    logger.exception(event, error=type(exc).__name__)
    return HTTPException(status_code=500, detail=INTERNAL_ERROR)

"""Error taxonomy shared by stores, services and routes.

Services raise these; routes translate them into HTTP status codes.
Storage-layer failures are converted to ConflictError / StorageError in
the repository layer so raw driver exceptions never reach a caller.
"""

from typing import Optional


class TenantGateError(Exception):
    """Base class for all domain errors."""

    message = "tenantgate error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


class ValidationError(TenantGateError):
    """Malformed or missing input. The caller's fault, never retried."""

    message = "invalid input"


class NotFoundError(TenantGateError):
    """A referenced tenant, key or user does not exist."""

    message = "not found"


class ConflictError(TenantGateError):
    """Duplicate email, duplicate active key, or a raced natural key.

    ``constraint`` names the violated database constraint when the error
    was translated from an integrity failure.
    """

    message = "conflict"

    def __init__(self, message: Optional[str] = None, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint


class ForbiddenError(TenantGateError):
    """Cross-tenant access, or an account that is not allowed in."""

    message = "forbidden"


class UnauthorizedError(TenantGateError):
    """Bad credentials, bad API key, or an invalid/expired token.

    ``reason`` is for logs only. The public message stays the same for
    every failure of one kind so callers cannot enumerate accounts or keys.
    """

    message = "unauthorized"

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or str(self)


class ConfigurationError(TenantGateError):
    """Required configuration (e.g. the JWT signing key) is missing."""

    message = "server misconfigured"


class StorageError(TenantGateError):
    """Uncategorized persistence failure. The cause is kept as __cause__."""

    message = "storage failure"

"""Authentication and authorization exceptions for the dashboard API."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth errors."""

    status_code: int = 500
    detail: str = "Authentication error"
    error: str = "auth_error"

    def __init__(self, detail: str | None = None):
        if detail:
            self.detail = detail
        super().__init__(self.detail)


class AuthenticationError(AuthError):
    """Authentication failed (401)."""

    status_code = 401
    detail = "Not authenticated"
    error = "missing_token"


class InvalidTokenError(AuthenticationError):
    """Token is invalid."""

    detail = "Invalid authentication token"
    error = "invalid_token"


class ExpiredTokenError(AuthenticationError):
    """Token has expired."""

    detail = "Token has expired"
    error = "token_expired"


class AuthorizationError(AuthError):
    """Authorization failed (403)."""

    status_code = 403
    detail = "Forbidden"
    error = "forbidden"


class TenantAccessError(AuthorizationError):
    """Caller may not view the requested tenant.

    Unknown tenants and non-allowlisted callers raise the same error with
    the same public detail. ``reason`` is for server-side logs only.
    """

    def __init__(self, tenant_key: str | None, reason: str):
        # SECURITY: Generic detail; specifics logged server-side by caller
        self.tenant_key = tenant_key
        self.reason = reason
        super().__init__()

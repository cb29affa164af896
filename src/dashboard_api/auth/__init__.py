"""Dashboard Auth Package - Token verification and tenant authorization.

Provides the JWT middleware that turns a bearer token into a
VerifiedIdentity, and the AuthorizationGate that decides which tenants
that identity may view.

Usage:
    from dashboard_api.auth.jwt import JWTMiddleware, JWTConfig
    from dashboard_api.auth.gate import AuthorizationGate, AccessDecision
    from dashboard_api.auth.exceptions import TenantAccessError
"""

from dashboard_api.auth.exceptions import (
    AuthenticationError,
    AuthError,
    AuthorizationError,
    ExpiredTokenError,
    InvalidTokenError,
    TenantAccessError,
)
from dashboard_api.auth.gate import AccessDecision, AuthorizationGate
from dashboard_api.auth.jwt import JWTConfig, JWTMiddleware
from dashboard_api.auth.models import VerifiedIdentity

__all__ = [
    # JWT
    "JWTConfig",
    "JWTMiddleware",
    # Gate
    "AuthorizationGate",
    "AccessDecision",
    # Models
    "VerifiedIdentity",
    # Exceptions
    "AuthError",
    "AuthenticationError",
    "AuthorizationError",
    "InvalidTokenError",
    "ExpiredTokenError",
    "TenantAccessError",
]

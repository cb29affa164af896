"""FastAPI dependencies for dashboard authorization.

Note: Do NOT use `from __future__ import annotations` in this module.
FastAPI inspects parameter annotations at runtime to recognize special types
like Request. PEP 563 deferred annotations turn them into strings, which
prevents FastAPI from injecting the Request object into callable dependencies.
"""

from typing import Optional

from fastapi import Request

from dashboard_api.auth.gate import AuthorizationGate
from dashboard_api.auth.models import VerifiedIdentity


def get_optional_identity(request: Request) -> Optional[VerifiedIdentity]:
    """Get the verified identity if present, None otherwise."""
    return getattr(request.state, "identity", None)


def get_gate(request: Request) -> AuthorizationGate:
    """Get the application's AuthorizationGate (set by create_app)."""
    return request.app.state.gate


class RequireTenantAccess:
    """Dependency that authorizes the caller for the ``tenant_key`` path param.

    Resolves to the canonical tenant key. Any deny raises TenantAccessError,
    which the application turns into a generic 403.

    Usage:
        @app.get("/api/dashboard/{tenant_key}/ga4Results")
        async def results(tenant: str = Depends(RequireTenantAccess())):
            ...
    """

    def __call__(self, request: Request, tenant_key: str) -> str:
        identity = get_optional_identity(request)
        return get_gate(request).check(identity, tenant_key)

"""Tenant-scoped authorization gate.

Decides whether a verified identity may view a tenant's dashboard. The
decision is a pure function of the tenant registry and the identity: it
never touches the analytics backend.
"""

import logging
from enum import Enum
from typing import Any, Optional, Tuple

from dashboard_api.auth.audit import AccessAuditRecord, log_access
from dashboard_api.auth.exceptions import TenantAccessError
from dashboard_api.auth.models import VerifiedIdentity
from dashboard_api.tenant.config import normalize_email
from dashboard_api.tenant.exceptions import UnknownTenantError
from dashboard_api.tenant.registry import TenantRegistry

logger = logging.getLogger(__name__)

# Internal denial reasons. Never sent to the client.
REASON_NO_IDENTITY = "no_identity"
REASON_NO_EMAIL = "no_email"
REASON_UNKNOWN_TENANT = "unknown_tenant"
REASON_NOT_ALLOWLISTED = "not_allowlisted"


class AccessDecision(str, Enum):
    """Binary per-tenant access decision."""

    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is AccessDecision.ALLOW


class AuthorizationGate:
    """Allowlist-based tenant access check.

    A caller is allowed iff its normalized email is in the tenant's
    allowlist (the owner is always in it). Everything else is a deny:
    unknown tenant, missing identity, identity without an email claim.

    Example:
        >>> gate = AuthorizationGate(registry)
        >>> gate.authorize(identity, "StepByStep")
        <AccessDecision.ALLOW: 'allow'>
        >>> canonical = gate.check(identity, "stepbystep")  # raises on deny
    """

    def __init__(self, registry: TenantRegistry):
        self._registry = registry

    def authorize(self, identity: Any, raw_tenant_key: Optional[str]) -> AccessDecision:
        """Decide whether ``identity`` may view ``raw_tenant_key``."""
        _, reason = self._evaluate(identity, raw_tenant_key)
        return AccessDecision.DENY if reason else AccessDecision.ALLOW

    def check(self, identity: Any, raw_tenant_key: Optional[str]) -> str:
        """Authorize and return the canonical tenant key.

        Raises:
            TenantAccessError: On any deny, with a generic public detail
        """
        canonical, reason = self._evaluate(identity, raw_tenant_key)
        if reason:
            raise TenantAccessError(raw_tenant_key, reason)
        return canonical

    def _evaluate(
        self, identity: Any, raw_tenant_key: Optional[str]
    ) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(canonical_key, deny_reason)``; reason is None on allow."""
        # SECURITY: Fail-closed on anything that is not a verified identity
        if not isinstance(identity, VerifiedIdentity):
            return self._deny(raw_tenant_key, None, None, REASON_NO_IDENTITY)

        try:
            canonical = self._registry.resolve(raw_tenant_key)
        except UnknownTenantError:
            return self._deny(raw_tenant_key, None, identity, REASON_UNKNOWN_TENANT)

        email = normalize_email(identity.email)
        if not email:
            return self._deny(raw_tenant_key, canonical, identity, REASON_NO_EMAIL)

        if email not in self._registry.allowlist_for(canonical):
            return self._deny(raw_tenant_key, canonical, identity, REASON_NOT_ALLOWLISTED)

        log_access(
            AccessAuditRecord.create(
                "allow",
                tenant_key=raw_tenant_key,
                tenant_id=canonical,
                subject=identity.subject,
                email=email,
            )
        )
        return canonical, None

    def _deny(
        self,
        raw_tenant_key: Optional[str],
        canonical: Optional[str],
        identity: Optional[VerifiedIdentity],
        reason: str,
    ) -> Tuple[Optional[str], str]:
        subject = email = None
        if identity is not None:
            subject = identity.subject
            email = normalize_email(identity.email) or None

        logger.debug("Tenant access denied: tenant=%s reason=%s", raw_tenant_key, reason)
        log_access(
            AccessAuditRecord.create(
                "deny",
                tenant_key=raw_tenant_key,
                tenant_id=canonical,
                subject=subject,
                email=email,
                reason=reason,
            )
        )
        return canonical, reason

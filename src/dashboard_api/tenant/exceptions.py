"""Tenant resolution exceptions.

Provides exception types for unknown tenant keys and for known tenants
whose deployment configuration is broken.
"""

from typing import List, Optional


class TenantError(Exception):
    """Base exception for tenant operations."""

    pass


class UnknownTenantError(TenantError):
    """Raised when a tenant key does not match any configured alias.

    Attributes:
        tenant_key: The raw key as supplied by the caller
    """

    def __init__(self, tenant_key: Optional[str], message: Optional[str] = None):
        self.tenant_key = tenant_key
        if message is None:
            message = f"Unknown tenant key: {tenant_key!r}"
        super().__init__(message)


class ConfigurationMissingError(TenantError):
    """Raised when a known tenant is missing required configuration.

    This is an operator fault (broken deployment), never a caller fault.

    Attributes:
        tenant_ids: Canonical keys of the misconfigured tenants
        setting: Name of the missing setting (e.g. an env var name)
    """

    def __init__(
        self,
        tenant_ids: List[str],
        setting: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.tenant_ids = list(tenant_ids)
        self.setting = setting

        if message is None:
            if setting:
                message = f"{setting} is missing or blank"
            else:
                message = "Required configuration is missing"
            message += f" for tenant(s): {', '.join(self.tenant_ids)}"

        super().__init__(message)

    @property
    def tenant_id(self) -> Optional[str]:
        """First affected tenant, for single-tenant call sites."""
        return self.tenant_ids[0] if self.tenant_ids else None

"""Dashboard Tenant Package.

Provides the immutable tenant registry that resolves tenant aliases and
exposes each tenant's analytics data source and viewer allowlist.

Usage:
    >>> from dashboard_api.tenant import TenantRegistry
    >>>
    >>> registry = TenantRegistry.from_environ(owner_email="owner@example.com")
    >>> registry.validate()
"""

from dashboard_api.tenant.config import (
    DEFAULT_TENANTS,
    TenantConfig,
    TenantDefinition,
    normalize_email,
    normalize_key,
)
from dashboard_api.tenant.exceptions import (
    ConfigurationMissingError,
    TenantError,
    UnknownTenantError,
)
from dashboard_api.tenant.registry import TenantRegistry

__all__ = [
    "DEFAULT_TENANTS",
    "TenantConfig",
    "TenantDefinition",
    "TenantRegistry",
    "TenantError",
    "UnknownTenantError",
    "ConfigurationMissingError",
    "normalize_key",
    "normalize_email",
]

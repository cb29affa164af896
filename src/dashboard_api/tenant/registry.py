"""Tenant registry - immutable tenant lookup built once at startup.

Provides TenantRegistry, which maps caller-supplied tenant keys to a
canonical key and exposes each tenant's data source and allowlist.
"""

import logging
import os
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from dashboard_api.tenant.config import (
    DEFAULT_TENANTS,
    TenantConfig,
    TenantDefinition,
    alias_table,
    normalize_key,
    parse_csv,
)
from dashboard_api.tenant.exceptions import ConfigurationMissingError, UnknownTenantError

logger = logging.getLogger(__name__)


class TenantRegistry:
    """Read-only tenant lookup.

    Lookups never fuzzy-match: a key resolves only if its trimmed,
    lowercased form is one of the configured aliases. Nothing mutates
    after ``__init__``, so one instance is shared across all requests
    without locking.

    Example:
        >>> registry = TenantRegistry.from_environ(os.environ, owner_email="me@x.com")
        >>> registry.resolve("  StepXStep ")
        'stepbystep'
        >>> registry.data_source_for("stepbystep")
        'properties/111'
    """

    def __init__(
        self,
        tenants: Iterable[TenantConfig],
        aliases: Optional[Mapping[str, str]] = None,
    ):
        """Initialize registry.

        Args:
            tenants: Resolved tenant configurations
            aliases: ``alias -> canonical_key`` table; defaults to each
                tenant's canonical key only

        Raises:
            ValueError: If an alias points at an unconfigured tenant
        """
        configs: Dict[str, TenantConfig] = {}
        for tenant in tenants:
            if tenant.canonical_key in configs:
                raise ValueError(f"Tenant '{tenant.canonical_key}' is configured twice")
            configs[tenant.canonical_key] = tenant

        table: Dict[str, str] = {key: key for key in configs}
        for alias, canonical in (aliases or {}).items():
            canonical = normalize_key(canonical)
            if canonical not in configs:
                raise ValueError(f"Alias '{alias}' points at unknown tenant '{canonical}'")
            table[normalize_key(alias)] = canonical

        self._tenants: Mapping[str, TenantConfig] = MappingProxyType(configs)
        self._aliases: Mapping[str, str] = MappingProxyType(table)

    @classmethod
    def from_environ(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        owner_email: Optional[str] = None,
        definitions: Iterable[TenantDefinition] = DEFAULT_TENANTS,
    ) -> "TenantRegistry":
        """Build a registry from ``GA4_PROPERTY_ID_*`` / ``ALLOWED_EMAILS_*`` vars.

        Missing values are recorded as-is; call ``validate()`` to fail fast.

        Args:
            environ: Environment mapping (default: ``os.environ``)
            owner_email: Identity implicitly allowed on every tenant
            definitions: Tenant alias table

        Returns:
            TenantRegistry
        """
        env = os.environ if environ is None else environ
        definitions = tuple(definitions)

        tenants = [
            TenantConfig.create(
                canonical_key=d.canonical_key,
                data_source_id=env.get(d.data_source_env),
                allowed_identities=parse_csv(env.get(d.allowlist_env)),
                owner_email=owner_email,
                data_source_env=d.data_source_env,
            )
            for d in definitions
        ]
        registry = cls(tenants, aliases=alias_table(definitions))

        logger.info(
            "Tenant registry loaded: %d tenant(s), %d alias(es)",
            len(registry._tenants),
            len(registry._aliases),
        )
        return registry

    @property
    def tenant_ids(self) -> List[str]:
        """Canonical keys of every configured tenant."""
        return sorted(self._tenants)

    def resolve(self, raw_key: Optional[str]) -> str:
        """Resolve a caller-supplied key to its canonical tenant key.

        Raises:
            UnknownTenantError: If the normalized key is not an alias
        """
        canonical = self._aliases.get(normalize_key(raw_key))
        if canonical is None:
            raise UnknownTenantError(raw_key)
        return canonical

    def get(self, canonical_key: str) -> TenantConfig:
        """Get a tenant's configuration by canonical key.

        Raises:
            UnknownTenantError: If the tenant is not configured
        """
        tenant = self._tenants.get(canonical_key)
        if tenant is None:
            raise UnknownTenantError(canonical_key)
        return tenant

    def data_source_for(self, canonical_key: str) -> str:
        """Get the analytics data source id for a tenant.

        Raises:
            UnknownTenantError: If the tenant is not configured
            ConfigurationMissingError: If the tenant has no data source id
        """
        tenant = self.get(canonical_key)
        if not tenant.data_source_id:
            raise ConfigurationMissingError(
                [canonical_key], setting=tenant.data_source_env
            )
        return tenant.data_source_id

    def allowlist_for(self, canonical_key: str) -> FrozenSet[str]:
        """Get the normalized emails allowed to view a tenant (owner included).

        Raises:
            UnknownTenantError: If the tenant is not configured
        """
        return self.get(canonical_key).allowed_identities

    def validate(self) -> None:
        """Fail fast if any configured tenant lacks a data source id.

        Raises:
            ConfigurationMissingError: Naming every misconfigured tenant
        """
        missing = [key for key, t in sorted(self._tenants.items()) if not t.data_source_id]
        if missing:
            settings = sorted(
                self._tenants[key].data_source_env or key for key in missing
            )
            raise ConfigurationMissingError(
                missing,
                message=(
                    "Analytics data source is not configured for tenant(s): "
                    f"{', '.join(missing)} (set {', '.join(settings)})"
                ),
            )

    def __contains__(self, canonical_key: object) -> bool:
        return canonical_key in self._tenants

    def __len__(self) -> int:
        return len(self._tenants)

"""Tenant configuration records.

Tenants are data, not code: each one is described by a TenantDefinition
(the static alias table) and materialized into an immutable TenantConfig
once the deployment's environment has been read.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple

PROPERTY_PREFIX = "properties/"

DATA_SOURCE_ENV_PREFIX = "GA4_PROPERTY_ID_"
ALLOWLIST_ENV_PREFIX = "ALLOWED_EMAILS_"


def normalize_key(value: Optional[str]) -> str:
    """Trim and lowercase a tenant key. ``None`` normalizes to ``""``."""
    return (value or "").strip().lower()


def normalize_email(value: Optional[str]) -> str:
    """Trim and lowercase an email address. ``None`` normalizes to ``""``."""
    return (value or "").strip().lower()


def parse_csv(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated setting, dropping blank entries."""
    if raw is None or not raw.strip():
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def normalize_data_source(raw: Optional[str]) -> Optional[str]:
    """Return ``properties/<id>`` for a configured property id, or None if blank."""
    value = (raw or "").strip()
    if not value:
        return None
    if value.startswith(PROPERTY_PREFIX):
        return value
    return PROPERTY_PREFIX + value


@dataclass(frozen=True)
class TenantDefinition:
    """Static description of a tenant: its canonical key and accepted aliases.

    Attributes:
        canonical_key: Normalized unique tenant identifier
        aliases: Accepted spellings (the canonical key is always included)
        env_suffix: Suffix of the per-tenant env vars (default: upper-cased key)

    Example:
        >>> TenantDefinition("ksnapstudio", aliases=("ksnap", "k-snap"))
    """

    canonical_key: str
    aliases: Tuple[str, ...] = ()
    env_suffix: Optional[str] = None

    def __post_init__(self) -> None:
        key = normalize_key(self.canonical_key)
        if not key:
            raise ValueError("canonical_key must be a non-empty string")
        object.__setattr__(self, "canonical_key", key)

        aliases = {normalize_key(a) for a in self.aliases}
        aliases.discard("")
        aliases.add(key)
        object.__setattr__(self, "aliases", tuple(sorted(aliases)))

        if not self.env_suffix:
            suffix = "".join(c if c.isalnum() else "_" for c in key).upper()
            object.__setattr__(self, "env_suffix", suffix)

    @property
    def data_source_env(self) -> str:
        return DATA_SOURCE_ENV_PREFIX + self.env_suffix

    @property
    def allowlist_env(self) -> str:
        return ALLOWLIST_ENV_PREFIX + self.env_suffix


DEFAULT_TENANTS: Tuple[TenantDefinition, ...] = (
    TenantDefinition(
        "stepbystep",
        aliases=("stepbystep", "stepxstep", "stepbystepclub"),
        env_suffix="STEPBYSTEP",
    ),
    TenantDefinition(
        "ksnapstudio",
        aliases=("ksnap", "ksnapstudio", "k-snap"),
        env_suffix="KSNAPSTUDIO",
    ),
    TenantDefinition(
        "rddigitech",
        aliases=("rddigitech", "rd", "rd-digitech", "rddigitaltech"),
        env_suffix="RDDIGITECH",
    ),
)


def definitions_from_mapping(
    mapping: Mapping[str, Sequence[str]],
) -> Tuple[TenantDefinition, ...]:
    """Build tenant definitions from a ``{canonical: [aliases]}`` mapping."""
    return tuple(
        TenantDefinition(canonical, aliases=tuple(aliases))
        for canonical, aliases in mapping.items()
    )


@dataclass(frozen=True)
class TenantConfig:
    """Resolved configuration for one tenant.

    Attributes:
        canonical_key: Normalized tenant identifier
        data_source_id: Analytics property handle (``properties/<id>``), or
            None when the deployment did not configure one
        allowed_identities: Normalized emails allowed to view this tenant,
            always including the owner
        data_source_env: Setting that should hold the data source id, for
            operator-facing error messages
    """

    canonical_key: str
    data_source_id: Optional[str]
    allowed_identities: FrozenSet[str] = field(default_factory=frozenset)
    data_source_env: Optional[str] = None

    @classmethod
    def create(
        cls,
        canonical_key: str,
        data_source_id: Optional[str],
        allowed_identities: Iterable[str] = (),
        owner_email: Optional[str] = None,
        data_source_env: Optional[str] = None,
    ) -> "TenantConfig":
        """Factory that normalizes every field and folds in the owner."""
        identities = {normalize_email(e) for e in allowed_identities}
        if owner_email:
            identities.add(normalize_email(owner_email))
        identities.discard("")

        return cls(
            canonical_key=normalize_key(canonical_key),
            data_source_id=normalize_data_source(data_source_id),
            allowed_identities=frozenset(identities),
            data_source_env=data_source_env,
        )


def alias_table(definitions: Iterable[TenantDefinition]) -> Dict[str, str]:
    """Flatten definitions into an ``alias -> canonical_key`` table.

    Raises:
        ValueError: If one alias points at two different tenants
    """
    table: Dict[str, str] = {}
    for definition in definitions:
        for alias in definition.aliases:
            existing = table.get(alias)
            if existing is not None and existing != definition.canonical_key:
                raise ValueError(
                    f"Alias '{alias}' maps to both '{existing}' "
                    f"and '{definition.canonical_key}'"
                )
            table[alias] = definition.canonical_key
    return table

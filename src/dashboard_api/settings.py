"""Process configuration for the dashboard API.

Settings are read once at startup from the environment (and an optional
``.env`` file). Per-tenant values (``GA4_PROPERTY_ID_*``,
``ALLOWED_EMAILS_*``) are not fields here because their names depend on
the tenant table; TenantRegistry.from_environ reads them directly.

SECURITY NOTE: ``repr()`` of Settings never shows the JWT secret or the
service-account key; both are SecretStr.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dashboard_api.auth.jwt import JWTConfig
from dashboard_api.auth.models import DEFAULT_EMAIL_CLAIM, email_claim_chain
from dashboard_api.tenant.config import (
    DEFAULT_TENANTS,
    TenantDefinition,
    definitions_from_mapping,
    normalize_email,
    parse_csv,
)

DEFAULT_CORS_ORIGINS: Tuple[str, ...] = (
    "https://stepbystepclub.ca",
    "https://www.stepbystepclub.ca",
    "http://localhost:5173",
    "http://localhost:8888",
    "http://localhost:5174",
)


class Settings(BaseSettings):
    """Dashboard API settings.

    Attributes:
        owner_email: Operator identity allowed on every tenant (required)
        email_claim: Namespaced JWT claim holding the caller email; the
            standard ``email`` claim is the fallback
        tenants: Optional ``{canonical: [aliases]}`` table replacing the
            built-in tenants
        strict_tenant_config: Refuse to start if any tenant lacks a data source
        cors_allowed_origins: Comma-separated allowed origins
        google_service_account_json: GA4 service-account key (JSON)
        ga4_timeout: Per-query GA4 timeout in seconds
        jwt_*: Token verification settings
        log_level: Root log level
        host / port: Bind address for ``python -m dashboard_api``
    """

    model_config = SettingsConfigDict(
        env_prefix="DASHBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Tenants / authorization
    owner_email: str
    email_claim: str = DEFAULT_EMAIL_CLAIM
    tenants: Optional[Dict[str, List[str]]] = None
    strict_tenant_config: bool = True

    # CORS
    cors_allowed_origins: Optional[str] = Field(
        default=None, validation_alias="CORS_ALLOWED_ORIGINS"
    )

    # Analytics backend
    google_service_account_json: Optional[SecretStr] = Field(
        default=None, validation_alias="GOOGLE_SERVICE_ACCOUNT_JSON"
    )
    ga4_timeout: float = Field(default=30.0, validation_alias="GA4_TIMEOUT_SECONDS")

    # JWT
    jwt_algorithm: str = Field(default="RS256", validation_alias="AUTH_JWT_ALGORITHM")
    jwt_issuer: Optional[str] = Field(default=None, validation_alias="AUTH_ISSUER")
    jwt_audience: Optional[str] = Field(default=None, validation_alias="AUTH_AUDIENCE")
    jwt_jwks_url: Optional[str] = Field(default=None, validation_alias="AUTH_JWKS_URL")
    jwt_secret: Optional[SecretStr] = Field(default=None, validation_alias="AUTH_JWT_SECRET")

    # Process
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8080, validation_alias="PORT")

    @field_validator("owner_email")
    @classmethod
    def _normalize_owner(cls, value: str) -> str:
        value = normalize_email(value)
        if not value:
            raise ValueError("owner email must not be blank")
        return value

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins; DEFAULT_CORS_ORIGINS when unset."""
        origins = parse_csv(self.cors_allowed_origins)
        return list(origins or DEFAULT_CORS_ORIGINS)

    def tenant_definitions(self) -> Tuple[TenantDefinition, ...]:
        if self.tenants:
            return definitions_from_mapping(self.tenants)
        return DEFAULT_TENANTS

    def jwt_config(self) -> JWTConfig:
        return JWTConfig(
            algorithm=self.jwt_algorithm,
            secret=self.jwt_secret.get_secret_value() if self.jwt_secret else None,
            issuer=self.jwt_issuer,
            audience=self.jwt_audience,
            jwks_url=self.jwt_jwks_url,
            email_claims=email_claim_chain(self.email_claim),
        )

    def service_account_json(self) -> Optional[str]:
        if self.google_service_account_json is None:
            return None
        return self.google_service_account_json.get_secret_value()

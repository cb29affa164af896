"""Dashboard API application factory.

Wires the immutable tenant registry, the authorization gate and the
report aggregator into a FastAPI app.

Request execution order (outermost to innermost):
    1. CORS (answers preflight without a token)
    2. JWT (token -> VerifiedIdentity)
    3. RequireTenantAccess dependency (gate; denies before any query)
    4. Route handler (ReportAggregator)

Usage:
    uvicorn --factory dashboard_api.app:create_app
"""

import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from dashboard_api import __version__
from dashboard_api.auth.exceptions import AuthError, TenantAccessError
from dashboard_api.auth.gate import AuthorizationGate
from dashboard_api.auth.jwt import JWTMiddleware
from dashboard_api.reports.aggregator import ReportAggregator
from dashboard_api.reports.backend import AnalyticsBackend
from dashboard_api.reports.exceptions import BackendQueryError
from dashboard_api.reports.ga4 import GA4Backend
from dashboard_api.routes import router
from dashboard_api.settings import Settings
from dashboard_api.tenant.exceptions import ConfigurationMissingError, UnknownTenantError
from dashboard_api.tenant.registry import TenantRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

FORBIDDEN = {"detail": "Forbidden", "error": "forbidden"}


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[AnalyticsBackend] = None,
    registry: Optional[TenantRegistry] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    """Create the dashboard FastAPI application.

    Configuration problems fail here, at startup, not per request.

    Args:
        settings: Settings (default: loaded from the environment)
        backend: Analytics backend (default: GA4 from the service account)
        registry: Tenant registry (default: built from ``environ``)
        environ: Environment for per-tenant settings (default: ``os.environ``)

    Returns:
        FastAPI application

    Raises:
        ConfigurationMissingError: A tenant lacks its data source (strict mode)
        ValueError: Invalid JWT or GA4 credentials configuration
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    if registry is None:
        registry = TenantRegistry.from_environ(
            environ,
            owner_email=settings.owner_email,
            definitions=settings.tenant_definitions(),
        )
    if settings.strict_tenant_config:
        try:
            registry.validate()
        except ConfigurationMissingError as e:
            logger.critical("Refusing to start: %s", e)
            raise

    if backend is None:
        backend = GA4Backend.from_service_account_json(
            settings.service_account_json(), timeout=settings.ga4_timeout
        )

    jwt_config = settings.jwt_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Dashboard API ready: tenants=%s", ", ".join(registry.tenant_ids)
        )
        yield
        await backend.close()
        logger.info("Dashboard API stopped")

    app = FastAPI(
        title="Dashboard API",
        description="Per-tenant web analytics summaries for dashboard clients.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.gate = AuthorizationGate(registry)
    app.state.aggregator = ReportAggregator(registry, backend)

    # Last added runs first: CORS must wrap JWT
    app.add_middleware(JWTMiddleware, config=jwt_config)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Authorization"],
        allow_credentials=False,
    )

    register_exception_handlers(app)
    app.include_router(router)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to deliberately low-information JSON responses."""

    @app.exception_handler(TenantAccessError)
    async def tenant_access_handler(request: Request, exc: TenantAccessError):
        # Unknown tenant and not-allowlisted look identical to the caller
        logger.warning(
            "Tenant access denied: path=%s reason=%s", request.url.path, exc.reason
        )
        return JSONResponse(status_code=403, content=FORBIDDEN)

    @app.exception_handler(UnknownTenantError)
    async def unknown_tenant_handler(request: Request, exc: UnknownTenantError):
        logger.warning("Unknown tenant past the gate: path=%s", request.url.path)
        return JSONResponse(status_code=403, content=FORBIDDEN)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.error},
        )

    @app.exception_handler(ConfigurationMissingError)
    async def configuration_handler(request: Request, exc: ConfigurationMissingError):
        logger.error("Deployment misconfigured: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": "configuration_error"},
        )

    @app.exception_handler(BackendQueryError)
    async def backend_query_handler(request: Request, exc: BackendQueryError):
        logger.error(
            "Analytics backend failure: tenant=%s category=%s cause=%r",
            exc.tenant_id,
            exc.category,
            exc.cause,
        )
        return JSONResponse(
            status_code=502,
            content={
                "detail": "Analytics backend query failed",
                "error": "backend_error",
                "tenant": exc.tenant_id,
                "category": exc.category,
            },
        )

"""Dashboard API - Per-tenant analytics summaries for dashboard clients.

Serves GA4 summaries for several tenants from one deployment. Callers
present an Auth0 bearer token; access to each tenant is granted by an
email allowlist held in configuration.

Usage:
    from dashboard_api.app import create_app

    app = create_app()  # settings and tenants from the environment

    # Or with explicit collaborators
    app = create_app(settings=Settings(owner_email="owner@example.com"),
                     backend=my_backend)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]

"""Pytest configuration for dashboard API tests.

Provides shared fixtures and test configuration.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt as pyjwt
import pytest
from dashboard_api.reports.backend import (
    AnalyticsBackend,
    ReportQuery,
    ReportResult,
    ReportRow,
)
from dashboard_api.settings import Settings
from dashboard_api.tenant.registry import TenantRegistry

SECRET = "test-secret-key-at-least-32-characters-long"
OWNER = "owner@example.com"
EMAIL_CLAIM = "https://rddigitech.ca/email"

TENANT_ENV = {
    "GA4_PROPERTY_ID_STEPBYSTEP": "properties/111",
    "ALLOWED_EMAILS_STEPBYSTEP": "a@x.com, Coach@StepByStepClub.ca ,",
    "GA4_PROPERTY_ID_KSNAPSTUDIO": "222",
    "ALLOWED_EMAILS_KSNAPSTUDIO": "b@y.com",
    "GA4_PROPERTY_ID_RDDIGITECH": " 333 ",
}


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (real app, fake backend)"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


class FakeBackend(AnalyticsBackend):
    """In-memory backend keyed by the query's first metric.

    ``event_counts`` maps event name -> count string; events missing from
    it return zero rows, like a property that never saw the event.
    """

    def __init__(
        self,
        kpis: Optional[List[str]] = None,
        sources: Optional[List[tuple]] = None,
        pages: Optional[List[tuple]] = None,
        event_counts: Optional[Dict[str, str]] = None,
        fail_on: Optional[str] = None,
    ):
        self.kpis = kpis
        self.sources = sources or []
        self.pages = pages or []
        self.event_counts = event_counts or {}
        self.fail_on = fail_on
        self.queries: List[ReportQuery] = []
        self.closed = False

    async def run_report(self, query: ReportQuery) -> ReportResult:
        self.queries.append(query)
        metric = query.metrics[0]
        if self.fail_on == metric:
            raise ConnectionError(f"backend unavailable for {metric}")

        if metric == "activeUsers":
            rows = [ReportRow(metric_values=tuple(self.kpis))] if self.kpis else []
        elif metric == "sessions":
            rows = [ReportRow((d,), (m,)) for d, m in self.sources]
        elif metric == "screenPageViews":
            rows = [ReportRow((d,), (m,)) for d, m in self.pages]
        elif metric == "eventCount":
            value = self.event_counts.get(query.dimension_filter.value)
            rows = [ReportRow(metric_values=(value,))] if value is not None else []
        else:
            rows = []
        return ReportResult(rows=rows, row_count=len(rows))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def tenant_env():
    return dict(TENANT_ENV)


@pytest.fixture
def registry(tenant_env):
    return TenantRegistry.from_environ(tenant_env, owner_email=OWNER)


@pytest.fixture
def fake_backend():
    return FakeBackend(
        kpis=["120", "80.0", "185.4"],
        sources=[("google / organic", "50"), ("(direct) / (none)", "30")],
        pages=[("/", "300"), ("/book", "42.0")],
        event_counts={"contact_submit": "7", "booking_click": "3.0"},
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        owner_email=OWNER,
        jwt_algorithm="HS256",
        jwt_secret=SECRET,
    )


def make_token(
    email: Optional[str] = "a@x.com",
    claim: Optional[str] = EMAIL_CLAIM,
    sub: str = "auth0|user-123",
    exp_minutes: int = 60,
    secret: str = SECRET,
    **extra,
) -> str:
    """Create a real HS256 JWT token for testing."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
    }
    if email is not None and claim:
        payload[claim] = email
    payload.update(extra)
    return pyjwt.encode(payload, secret, algorithm="HS256")

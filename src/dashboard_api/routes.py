"""HTTP routes for the dashboard API.

Note: Do NOT use `from __future__ import annotations` in this module.
FastAPI inspects parameter annotations at runtime.
"""

from typing import Dict

from fastapi import APIRouter, Depends, Query, Request

from dashboard_api.auth.dependencies import RequireTenantAccess
from dashboard_api.reports.aggregator import ReportAggregator
from dashboard_api.reports.models import ResponsePayload

router = APIRouter(prefix="/api")


def get_aggregator(request: Request) -> ReportAggregator:
    return request.app.state.aggregator


@router.get("/health")
async def health() -> Dict[str, str]:
    """Liveness probe. Static; never touches tenant data."""
    return {"status": "ok"}


@router.get("/dashboard/{tenant_key}/ga4Results", response_model=ResponsePayload)
async def ga4_results(
    tenant: str = Depends(RequireTenantAccess()),
    days: int = Query(30, description="Lookback window in days, clamped to [1, 365]"),
    aggregator: ReportAggregator = Depends(get_aggregator),
) -> ResponsePayload:
    """Analytics summary for one tenant over the last ``days`` days."""
    return await aggregator.get_results(tenant, days)

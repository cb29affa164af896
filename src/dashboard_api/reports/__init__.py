"""Dashboard Reports Package.

Provides the ReportAggregator that queries an analytics backend for a
tenant and normalizes the rows into the dashboard ResponsePayload.

Usage:
    >>> from dashboard_api.reports import ReportAggregator, GA4Backend
    >>>
    >>> backend = GA4Backend.from_service_account_json(raw_json)
    >>> payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
"""

from dashboard_api.reports.aggregator import NOT_SET, ReportAggregator
from dashboard_api.reports.backend import (
    AnalyticsBackend,
    DimensionFilter,
    ReportQuery,
    ReportResult,
    ReportRow,
)
from dashboard_api.reports.exceptions import BackendQueryError, ReportError
from dashboard_api.reports.ga4 import GA4Backend
from dashboard_api.reports.models import PageRow, ResponsePayload, SourceRow
from dashboard_api.reports.parsing import UNKNOWN_DURATION

__all__ = [
    "ReportAggregator",
    "AnalyticsBackend",
    "GA4Backend",
    "DimensionFilter",
    "ReportQuery",
    "ReportResult",
    "ReportRow",
    "ResponsePayload",
    "SourceRow",
    "PageRow",
    "ReportError",
    "BackendQueryError",
    "NOT_SET",
    "UNKNOWN_DURATION",
]

"""Google Analytics 4 backend.

Translates ReportQuery into GA4 Data API ``RunReportRequest`` messages and
the responses back into ReportResult rows.
"""

import json
import logging
from typing import Any, Dict, Optional

from google.analytics.data_v1beta import BetaAnalyticsDataAsyncClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Filter,
    FilterExpression,
    Metric,
    OrderBy,
    RunReportRequest,
    RunReportResponse,
)
from google.oauth2 import service_account

from dashboard_api.reports.backend import (
    AnalyticsBackend,
    ReportQuery,
    ReportResult,
    ReportRow,
)

logger = logging.getLogger(__name__)

ANALYTICS_READONLY_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"


def build_request(query: ReportQuery) -> RunReportRequest:
    """Build a GA4 RunReportRequest from a ReportQuery."""
    kwargs: Dict[str, Any] = {
        "property": query.data_source_id,
        "date_ranges": [DateRange(start_date=query.start_date, end_date=query.end_date)],
        "dimensions": [Dimension(name=name) for name in query.dimensions],
        "metrics": [Metric(name=name) for name in query.metrics],
    }

    if query.dimension_filter is not None:
        kwargs["dimension_filter"] = FilterExpression(
            filter=Filter(
                field_name=query.dimension_filter.field_name,
                string_filter=Filter.StringFilter(
                    match_type=Filter.StringFilter.MatchType.EXACT,
                    value=query.dimension_filter.value,
                ),
            )
        )
    if query.order_by:
        kwargs["order_bys"] = [
            OrderBy(
                metric=OrderBy.MetricOrderBy(metric_name=query.order_by),
                desc=query.order_desc,
            )
        ]
    if query.limit:
        kwargs["limit"] = query.limit

    return RunReportRequest(**kwargs)


def parse_response(response: RunReportResponse) -> ReportResult:
    """Convert a GA4 RunReportResponse into a ReportResult."""
    rows = [
        ReportRow(
            dimension_values=tuple(v.value for v in row.dimension_values),
            metric_values=tuple(v.value for v in row.metric_values),
        )
        for row in response.rows
    ]
    return ReportResult(rows=rows, row_count=response.row_count or len(rows))


class GA4Backend(AnalyticsBackend):
    """GA4 Data API (v1beta) backend.

    The async client is created on first use so that its gRPC channel
    binds to the running event loop.

    Usage:
        backend = GA4Backend.from_service_account_json(os.environ["GOOGLE_SERVICE_ACCOUNT_JSON"])
        result = await backend.run_report(query)
    """

    def __init__(
        self,
        credentials: Optional[Any] = None,
        client: Optional[BetaAnalyticsDataAsyncClient] = None,
        timeout: Optional[float] = 30.0,
    ):
        """Initialize GA4 backend.

        Args:
            credentials: google-auth credentials for the client
            client: Pre-built async client (tests, custom transports)
            timeout: Per-request timeout in seconds
        """
        if client is None and credentials is None:
            raise ValueError("GA4Backend requires credentials or a client")
        self._credentials = credentials
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_service_account_json(
        cls, raw_json: Optional[str], timeout: Optional[float] = 30.0
    ) -> "GA4Backend":
        """Create a backend from service-account key JSON.

        Raises:
            ValueError: If the JSON is missing or not a service-account key
        """
        if raw_json is None or not raw_json.strip():
            raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON is missing")
        try:
            info = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e.msg}")

        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=[ANALYTICS_READONLY_SCOPE]
        )
        return cls(credentials=credentials, timeout=timeout)

    def _get_client(self) -> BetaAnalyticsDataAsyncClient:
        if self._client is None:
            self._client = BetaAnalyticsDataAsyncClient(credentials=self._credentials)
        return self._client

    async def run_report(self, query: ReportQuery) -> ReportResult:
        request = build_request(query)
        logger.debug(
            "GA4 runReport: property=%s metrics=%s dimensions=%s",
            query.data_source_id,
            ",".join(query.metrics),
            ",".join(query.dimensions),
        )
        response = await self._get_client().run_report(
            request=request, timeout=self._timeout
        )
        return parse_response(response)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.transport.close()
            self._client = None

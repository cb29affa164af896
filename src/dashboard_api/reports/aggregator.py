"""Report aggregator - builds a tenant's dashboard payload.

Runs four independent query groups against the analytics backend
concurrently (KPIs, top sources, top pages, event counts), then
normalizes the raw string rows into a ResponsePayload.

Ordering of top sources and top pages under equal metric values is
whatever the backend returns; no secondary sort key is applied.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, Sequence, Tuple, TypeVar

from dashboard_api.reports.backend import (
    AnalyticsBackend,
    DimensionFilter,
    ReportQuery,
)
from dashboard_api.reports.exceptions import (
    CATEGORY_EVENT_COUNTS,
    CATEGORY_KPIS,
    CATEGORY_TOP_PAGES,
    CATEGORY_TOP_SOURCES,
    BackendQueryError,
)
from dashboard_api.reports.models import Kpis, PageRow, ResponsePayload, SourceRow
from dashboard_api.reports.parsing import (
    clamp_window,
    format_duration,
    parse_count,
    parse_float,
    range_label,
    window_start,
)
from dashboard_api.tenant.registry import TenantRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

END_DATE = "today"
TOP_SOURCES_LIMIT = 8
TOP_PAGES_LIMIT = 12

# Reported when there are no traffic sources; clients match on it verbatim
NOT_SET = "(not set)"

CONTACT_SUBMIT_EVENT = "contact_submit"
BOOKING_CLICK_EVENT = "booking_click"
TRACKED_EVENTS: Tuple[str, ...] = (CONTACT_SUBMIT_EVENT, BOOKING_CLICK_EVENT)


class ReportAggregator:
    """Fetches and normalizes one tenant's analytics summary.

    Only call ``get_results`` after the AuthorizationGate has allowed the
    caller. Nothing is cached: every call re-queries the backend.

    Example:
        >>> aggregator = ReportAggregator(registry, GA4Backend.from_service_account_json(raw))
        >>> payload = await aggregator.get_results("stepbystep", 30)
        >>> payload.topTrafficSource
        'google / organic'
    """

    def __init__(
        self,
        registry: TenantRegistry,
        backend: AnalyticsBackend,
        events: Sequence[str] = TRACKED_EVENTS,
    ):
        self._registry = registry
        self._backend = backend
        self._events = tuple(events)

    async def get_results(
        self, canonical_key: str, window_days: Optional[int] = 30
    ) -> ResponsePayload:
        """Build the dashboard payload for a tenant.

        Args:
            canonical_key: Tenant key, already resolved by the gate
            window_days: Lookback window, clamped to [1, 365]

        Returns:
            ResponsePayload

        Raises:
            ConfigurationMissingError: Tenant has no data source configured
            BackendQueryError: Any backend query failed
        """
        data_source = self._registry.data_source_for(canonical_key)
        days = clamp_window(window_days)
        start = window_start(days)

        logger.debug(
            "Building report: tenant=%s source=%s days=%d",
            canonical_key,
            data_source,
            days,
        )

        jobs: List[Tuple[str, Awaitable]] = [
            (CATEGORY_KPIS, self.fetch_kpis(data_source, start)),
            (CATEGORY_TOP_SOURCES, self.fetch_top_sources(data_source, start)),
            (CATEGORY_TOP_PAGES, self.fetch_top_pages(data_source, start)),
        ]
        # One job per event so a failure cancels its siblings too
        jobs.extend(
            (CATEGORY_EVENT_COUNTS, self.fetch_event_count(data_source, start, event))
            for event in self._events
        )
        kpis, sources, pages, *counts = await self._gather(canonical_key, jobs)
        events = dict(zip(self._events, counts))

        return ResponsePayload(
            rangeLabel=range_label(days),
            users=kpis.users,
            newUsers=kpis.new_users,
            avgEngagementTime=kpis.avg_session_duration,
            contactSubmits=events.get(CONTACT_SUBMIT_EVENT, 0),
            bookingClicks=events.get(BOOKING_CLICK_EVENT, 0),
            topTrafficSource=sources[0].source if sources else NOT_SET,
            topSources=sources,
            topPages=pages,
            tenant=canonical_key,
        )

    async def _gather(
        self, tenant_id: str, jobs: List[Tuple[str, Awaitable]]
    ) -> List:
        """Run jobs concurrently; the first failure cancels the rest.

        Raises:
            BackendQueryError: Wrapping the first failure
        """
        tasks = [
            asyncio.ensure_future(self._guard(tenant_id, category, job))
            for category, job in jobs
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Wait for cancellation and retrieve any second failure
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _guard(self, tenant_id: str, category: str, job: Awaitable[T]) -> T:
        try:
            return await job
        except BackendQueryError:
            raise
        except Exception as e:
            raise BackendQueryError(tenant_id, category, cause=e) from e

    async def fetch_kpis(self, data_source: str, start_date: str) -> Kpis:
        """Active users, new users and average session duration.

        Zero rows yields zero counts and the unknown-duration marker.
        """
        result = await self._backend.run_report(
            ReportQuery(
                data_source_id=data_source,
                start_date=start_date,
                end_date=END_DATE,
                metrics=("activeUsers", "newUsers", "averageSessionDuration"),
            )
        )

        row = result.first
        if row is None:
            return Kpis(users=0, new_users=0, avg_session_duration=format_duration(0))

        return Kpis(
            users=parse_count(row.metric(0)),
            new_users=parse_count(row.metric(1)),
            avg_session_duration=format_duration(parse_float(row.metric(2))),
        )

    async def fetch_top_sources(
        self, data_source: str, start_date: str, limit: int = TOP_SOURCES_LIMIT
    ) -> List[SourceRow]:
        """Sessions grouped by source / medium, most sessions first."""
        result = await self._backend.run_report(
            ReportQuery(
                data_source_id=data_source,
                start_date=start_date,
                end_date=END_DATE,
                dimensions=("sessionSourceMedium",),
                metrics=("sessions",),
                order_by="sessions",
                order_desc=True,
                limit=limit,
            )
        )

        rows = [
            SourceRow(source=r.dimension(0), sessions=parse_count(r.metric(0)))
            for r in result.rows
        ]
        # sorted() is stable: equal session counts keep backend order
        return sorted(rows, key=lambda r: r.sessions, reverse=True)

    async def fetch_top_pages(
        self, data_source: str, start_date: str, limit: int = TOP_PAGES_LIMIT
    ) -> List[PageRow]:
        """Page views grouped by page path, in backend order."""
        result = await self._backend.run_report(
            ReportQuery(
                data_source_id=data_source,
                start_date=start_date,
                end_date=END_DATE,
                dimensions=("pagePath",),
                metrics=("screenPageViews",),
                order_by="screenPageViews",
                order_desc=True,
                limit=limit,
            )
        )

        return [
            PageRow(path=r.dimension(0), views=parse_count(r.metric(0)))
            for r in result.rows
        ]

    async def fetch_event_count(
        self, data_source: str, start_date: str, event_name: str
    ) -> int:
        """Count of one named event. Never-seen events count as 0."""
        result = await self._backend.run_report(
            ReportQuery(
                data_source_id=data_source,
                start_date=start_date,
                end_date=END_DATE,
                metrics=("eventCount",),
                dimension_filter=DimensionFilter(field_name="eventName", value=event_name),
            )
        )

        row = result.first
        if row is None:
            return 0
        return parse_count(row.metric(0))

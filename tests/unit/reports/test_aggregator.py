"""Unit tests for ReportAggregator.

Tier 1 tests - uses an in-memory backend.
"""

import asyncio

import pytest
from conftest import FakeBackend
from dashboard_api.reports.aggregator import NOT_SET, ReportAggregator
from dashboard_api.reports.backend import AnalyticsBackend, ReportResult, ReportRow
from dashboard_api.reports.exceptions import BackendQueryError
from dashboard_api.reports.models import PageRow, ResponsePayload, SourceRow
from dashboard_api.reports.parsing import UNKNOWN_DURATION
from dashboard_api.tenant.exceptions import ConfigurationMissingError
from dashboard_api.tenant.registry import TenantRegistry

# =============================================================================
# Tests: Payload Assembly
# =============================================================================


class TestGetResults:
    """Full payload for a healthy backend."""

    @pytest.mark.asyncio
    async def test_payload(self, registry, fake_backend):
        payload = await ReportAggregator(registry, fake_backend).get_results("stepbystep", 30)

        assert isinstance(payload, ResponsePayload)
        assert payload.rangeLabel == "Last 30 days"
        assert payload.users == 120
        assert payload.newUsers == 80
        assert payload.avgEngagementTime == "3m 5s"
        assert payload.contactSubmits == 7
        assert payload.bookingClicks == 3
        assert payload.topTrafficSource == "google / organic"
        assert payload.topSources == [
            SourceRow(source="google / organic", sessions=50),
            SourceRow(source="(direct) / (none)", sessions=30),
        ]
        assert payload.topPages == [PageRow(path="/", views=300), PageRow(path="/book", views=42)]
        assert payload.tenant == "stepbystep"

    @pytest.mark.asyncio
    async def test_wire_keys(self, registry, fake_backend):
        payload = await ReportAggregator(registry, fake_backend).get_results("stepbystep", 30)
        data = payload.model_dump()
        assert set(data) == {
            "rangeLabel",
            "users",
            "newUsers",
            "avgEngagementTime",
            "contactSubmits",
            "bookingClicks",
            "topTrafficSource",
            "topSources",
            "topPages",
            "tenant",
        }
        assert set(data["topSources"][0]) == {"source", "sessions"}
        assert set(data["topPages"][0]) == {"path", "views"}

    @pytest.mark.asyncio
    async def test_idempotent(self, registry, fake_backend):
        aggregator = ReportAggregator(registry, fake_backend)
        first = await aggregator.get_results("stepbystep", 30)
        second = await aggregator.get_results("stepbystep", 30)
        assert first == second

    @pytest.mark.asyncio
    async def test_every_call_requeries(self, registry, fake_backend):
        aggregator = ReportAggregator(registry, fake_backend)
        await aggregator.get_results("stepbystep", 30)
        await aggregator.get_results("stepbystep", 30)
        # kpis + sources + pages + 2 events, twice
        assert len(fake_backend.queries) == 10


# =============================================================================
# Tests: Queries Issued
# =============================================================================


class TestQueries:
    """Shape of the queries sent to the backend."""

    @pytest.mark.asyncio
    async def test_queries_scoped_to_data_source(self, registry, fake_backend):
        await ReportAggregator(registry, fake_backend).get_results("ksnapstudio", 30)
        assert {q.data_source_id for q in fake_backend.queries} == {"properties/222"}

    @pytest.mark.parametrize("days,start", [(0, "1daysAgo"), (7, "7daysAgo"), (10000, "365daysAgo")])
    @pytest.mark.asyncio
    async def test_window_clamped(self, registry, fake_backend, days, start):
        payload = await ReportAggregator(registry, fake_backend).get_results("stepbystep", days)
        assert {q.start_date for q in fake_backend.queries} == {start}
        assert {q.end_date for q in fake_backend.queries} == {"today"}
        assert payload.rangeLabel == f"Last {start[:-7]} days"

    @pytest.mark.asyncio
    async def test_query_definitions(self, registry, fake_backend):
        await ReportAggregator(registry, fake_backend).get_results("stepbystep", 30)
        by_metric = {q.metrics[0]: q for q in fake_backend.queries if q.metrics[0] != "eventCount"}

        kpis = by_metric["activeUsers"]
        assert kpis.metrics == ("activeUsers", "newUsers", "averageSessionDuration")
        assert kpis.dimensions == ()

        sources = by_metric["sessions"]
        assert sources.dimensions == ("sessionSourceMedium",)
        assert (sources.order_by, sources.order_desc, sources.limit) == ("sessions", True, 8)

        pages = by_metric["screenPageViews"]
        assert pages.dimensions == ("pagePath",)
        assert (pages.order_by, pages.order_desc, pages.limit) == ("screenPageViews", True, 12)

        events = [q for q in fake_backend.queries if q.metrics == ("eventCount",)]
        assert sorted(q.dimension_filter.value for q in events) == ["booking_click", "contact_submit"]
        assert {q.dimension_filter.field_name for q in events} == {"eventName"}


# =============================================================================
# Tests: Empty and Malformed Data
# =============================================================================


class TestEmptyResults:
    """Zero rows is data, not an error."""

    @pytest.mark.asyncio
    async def test_no_kpi_rows(self, registry):
        payload = await ReportAggregator(registry, FakeBackend()).get_results("stepbystep", 30)
        assert payload.users == 0
        assert payload.newUsers == 0
        assert payload.avgEngagementTime == UNKNOWN_DURATION

    @pytest.mark.asyncio
    async def test_no_sources(self, registry):
        payload = await ReportAggregator(registry, FakeBackend()).get_results("stepbystep", 30)
        assert payload.topTrafficSource == NOT_SET == "(not set)"
        assert payload.topSources == []
        assert payload.topPages == []

    @pytest.mark.asyncio
    async def test_unseen_event_counts_zero(self, registry):
        backend = FakeBackend(event_counts={"contact_submit": "4"})
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert payload.contactSubmits == 4
        assert payload.bookingClicks == 0

    @pytest.mark.asyncio
    async def test_zero_duration_is_unknown(self, registry):
        backend = FakeBackend(kpis=["0", "0", "0"])
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert payload.users == 0
        assert payload.avgEngagementTime == UNKNOWN_DURATION

    @pytest.mark.asyncio
    async def test_malformed_values_default_to_zero(self, registry):
        backend = FakeBackend(
            kpis=["lots", "", "n/a"],
            sources=[("google / organic", "??")],
            pages=[("/", "")],
            event_counts={"contact_submit": "x", "booking_click": "2.0"},
        )
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert (payload.users, payload.newUsers) == (0, 0)
        assert payload.avgEngagementTime == UNKNOWN_DURATION
        assert payload.topSources == [SourceRow(source="google / organic", sessions=0)]
        assert payload.topPages == [PageRow(path="/", views=0)]
        assert (payload.contactSubmits, payload.bookingClicks) == (0, 2)

    @pytest.mark.asyncio
    async def test_short_rows_do_not_crash(self, registry):
        class ShortRowBackend(AnalyticsBackend):
            async def run_report(self, query):
                return ReportResult(rows=[ReportRow()], row_count=1)

        payload = await ReportAggregator(registry, ShortRowBackend()).get_results("stepbystep", 30)
        assert payload.users == 0
        assert payload.topTrafficSource == ""
        assert payload.topSources == [SourceRow(source="", sessions=0)]


# =============================================================================
# Tests: Ordering
# =============================================================================


class TestOrdering:
    @pytest.mark.asyncio
    async def test_sources_sorted_descending(self, registry):
        backend = FakeBackend(sources=[("a", "5"), ("b", "20"), ("c", "10")])
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert [r.source for r in payload.topSources] == ["b", "c", "a"]
        assert payload.topTrafficSource == "b"

    @pytest.mark.asyncio
    async def test_source_ties_keep_backend_order(self, registry):
        backend = FakeBackend(sources=[("z", "10"), ("a", "10"), ("m", "10.0")])
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert [r.source for r in payload.topSources] == ["z", "a", "m"]

    @pytest.mark.asyncio
    async def test_pages_keep_backend_order(self, registry):
        backend = FakeBackend(pages=[("/a", "1"), ("/b", "9")])
        payload = await ReportAggregator(registry, backend).get_results("stepbystep", 30)
        assert [r.path for r in payload.topPages] == ["/a", "/b"]


# =============================================================================
# Tests: Failures
# =============================================================================


class TestFailures:
    """Failure propagation policy."""

    @pytest.mark.asyncio
    async def test_missing_data_source(self, tenant_env, fake_backend):
        del tenant_env["GA4_PROPERTY_ID_STEPBYSTEP"]
        registry = TenantRegistry.from_environ(tenant_env, owner_email="o@x.com")

        with pytest.raises(ConfigurationMissingError):
            await ReportAggregator(registry, fake_backend).get_results("stepbystep", 30)
        assert fake_backend.queries == []

    @pytest.mark.parametrize(
        "metric,category",
        [
            ("activeUsers", "kpis"),
            ("sessions", "top_sources"),
            ("screenPageViews", "top_pages"),
            ("eventCount", "event_counts"),
        ],
    )
    @pytest.mark.asyncio
    async def test_backend_failure_fails_whole_call(self, registry, metric, category):
        backend = FakeBackend(fail_on=metric)
        with pytest.raises(BackendQueryError) as exc_info:
            await ReportAggregator(registry, backend).get_results("stepbystep", 30)

        error = exc_info.value
        assert error.tenant_id == "stepbystep"
        assert error.category == category
        assert isinstance(error.cause, ConnectionError)
        assert "ConnectionError" in str(error)

    @pytest.mark.asyncio
    async def test_failure_cancels_pending_queries(self, registry):
        cancelled = []

        class SlowBackend(AnalyticsBackend):
            async def run_report(self, query):
                if query.metrics[0] == "activeUsers":
                    raise TimeoutError("deadline exceeded")
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.append(query.metrics[0])
                    raise
                return ReportResult()

        with pytest.raises(BackendQueryError) as exc_info:
            await ReportAggregator(registry, SlowBackend()).get_results("stepbystep", 30)
        assert exc_info.value.category == "kpis"

        # cancellation has completed by the time the error surfaces
        assert "sessions" in cancelled
        assert "screenPageViews" in cancelled

    @pytest.mark.asyncio
    async def test_failed_event_cancels_sibling_event(self, registry):
        cancelled = []
        finished = []

        class EventBackend(AnalyticsBackend):
            async def run_report(self, query):
                if query.dimension_filter is None:
                    return ReportResult()
                event = query.dimension_filter.value
                if event == "contact_submit":
                    raise ConnectionError("reset by peer")
                try:
                    await asyncio.sleep(0.2)
                except asyncio.CancelledError:
                    cancelled.append(event)
                    raise
                finished.append(event)
                return ReportResult()

        with pytest.raises(BackendQueryError) as exc_info:
            await ReportAggregator(registry, EventBackend()).get_results("stepbystep", 30)
        assert exc_info.value.category == "event_counts"
        assert cancelled == ["booking_click"]

        await asyncio.sleep(0.3)
        assert finished == []

    @pytest.mark.asyncio
    async def test_second_failure_does_not_mask_first(self, registry):
        class FailingBackend(AnalyticsBackend):
            async def run_report(self, query):
                if query.metrics[0] == "activeUsers":
                    raise TimeoutError("deadline exceeded")
                await asyncio.sleep(0)
                raise ConnectionError("reset by peer")

        with pytest.raises(BackendQueryError) as exc_info:
            await ReportAggregator(registry, FailingBackend()).get_results("stepbystep", 30)
        assert exc_info.value.category == "kpis"
        assert isinstance(exc_info.value.cause, TimeoutError)


# =============================================================================
# Tests: Concurrency
# =============================================================================


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_query_groups_run_concurrently(self, registry):
        in_flight = 0
        peak = 0

        class CountingBackend(AnalyticsBackend):
            async def run_report(self, query):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return ReportResult()

        await ReportAggregator(registry, CountingBackend()).get_results("stepbystep", 30)
        # kpis, sources, pages and both event counts overlap
        assert peak == 5

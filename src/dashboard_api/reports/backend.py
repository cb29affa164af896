"""Abstract analytics backend interface.

The backend runs one report query against a data source and returns raw
rows whose dimension and metric values are strings.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class DimensionFilter:
    """Exact-match equality filter on one dimension."""

    field_name: str
    value: str


@dataclass(frozen=True)
class ReportQuery:
    """One report request.

    Attributes:
        data_source_id: Backend property handle (``properties/<id>``)
        start_date: Start of the range, literal or relative (``30daysAgo``)
        end_date: End of the range, literal or relative (``today``)
        dimensions: Ordered dimension names
        metrics: Ordered metric names
        dimension_filter: Optional equality filter
        order_by: Optional metric name to order by
        order_desc: Descending order when ``order_by`` is set
        limit: Optional row limit
    """

    data_source_id: str
    start_date: str
    end_date: str
    dimensions: Tuple[str, ...] = ()
    metrics: Tuple[str, ...] = ()
    dimension_filter: Optional[DimensionFilter] = None
    order_by: Optional[str] = None
    order_desc: bool = True
    limit: Optional[int] = None


@dataclass(frozen=True)
class ReportRow:
    """One result row with positional string values."""

    dimension_values: Tuple[str, ...] = ()
    metric_values: Tuple[str, ...] = ()

    def dimension(self, index: int, default: str = "") -> str:
        """Dimension value at ``index``, or ``default`` when the row is short."""
        if index < len(self.dimension_values):
            return self.dimension_values[index]
        return default

    def metric(self, index: int, default: str = "") -> str:
        """Metric value at ``index``, or ``default`` when the row is short."""
        if index < len(self.metric_values):
            return self.metric_values[index]
        return default


@dataclass(frozen=True)
class ReportResult:
    """Rows returned by the backend. Zero rows is a valid result."""

    rows: List[ReportRow] = field(default_factory=list)
    row_count: int = 0

    @property
    def first(self) -> Optional[ReportRow]:
        return self.rows[0] if self.rows else None


class AnalyticsBackend(ABC):
    """Abstract interface for analytics backends.

    Implementations enforce their own timeouts and raise on failure; the
    caller does not retry.
    """

    @abstractmethod
    async def run_report(self, query: ReportQuery) -> ReportResult:
        """Execute a report query.

        Args:
            query: ReportQuery to run

        Returns:
            ReportResult (possibly empty)
        """
        pass

    async def close(self) -> None:
        """Clean up resources."""
        pass

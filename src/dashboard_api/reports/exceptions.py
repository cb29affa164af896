"""Report exceptions."""

from typing import Optional

CATEGORY_KPIS = "kpis"
CATEGORY_TOP_SOURCES = "top_sources"
CATEGORY_TOP_PAGES = "top_pages"
CATEGORY_EVENT_COUNTS = "event_counts"


class ReportError(Exception):
    """Base exception for report operations."""

    pass


class BackendQueryError(ReportError):
    """Raised when an analytics backend query fails.

    Attributes:
        tenant_id: Canonical key of the tenant being reported on
        category: Which query group failed (kpis, top_sources, ...)
        cause: Underlying exception, for server-side logs only
    """

    def __init__(
        self,
        tenant_id: str,
        category: str,
        cause: Optional[BaseException] = None,
    ):
        self.tenant_id = tenant_id
        self.category = category
        self.cause = cause

        message = f"Analytics query '{category}' failed for tenant '{tenant_id}'"
        if cause is not None:
            message += f": {type(cause).__name__}"
        super().__init__(message)

"""Dashboard response model.

Field names are a compatibility contract with existing dashboard clients.
Changes must be additive only.
"""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SourceRow(BaseModel):
    """Sessions per source / medium."""

    model_config = ConfigDict(frozen=True)

    source: str
    sessions: int = Field(ge=0)


class PageRow(BaseModel):
    """Page views per page path."""

    model_config = ConfigDict(frozen=True)

    path: str
    views: int = Field(ge=0)


class ResponsePayload(BaseModel):
    """Per-tenant analytics summary returned to dashboard clients."""

    model_config = ConfigDict(frozen=True)

    rangeLabel: str
    users: int = Field(ge=0)
    newUsers: int = Field(ge=0)
    avgEngagementTime: str
    contactSubmits: int = Field(ge=0)
    bookingClicks: int = Field(ge=0)
    topTrafficSource: str
    topSources: List[SourceRow] = Field(default_factory=list)
    topPages: List[PageRow] = Field(default_factory=list)
    tenant: str


@dataclass(frozen=True)
class Kpis:
    """Headline numbers for the window."""

    users: int = 0
    new_users: int = 0
    avg_session_duration: str = ""

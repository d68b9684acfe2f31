"""Pydantic models for weekly keyword rank tracking."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class TrackingStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class AlertType(str, Enum):
    """Keyword ranking alerts raised by the weekly update."""

    POSITION_IMPROVED = "position_improved"
    POSITION_DECLINED = "position_declined"
    FIRST_PAGE_ACHIEVED = "first_page_achieved"


# Position reported when Search Console has no row for a keyword
UNRANKED_POSITION = 999.0


class KeywordPerformanceRecord(BaseModel):
    """One week of Search Console performance for a tracked keyword."""

    keyword_id: int
    week_start_date: date
    week_end_date: date
    avg_position: float
    best_position: int
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0
    ranking_url: str | None = None
    position_change: float | None = Field(
        default=None, description="Previous minus current position; positive is an improvement"
    )
    data_source: str = "search_console"


class UpdateError(BaseModel):
    report_id: int
    error: str


class KeywordUpdateSummary(BaseModel):
    """Outcome of a keyword update run across all clients."""

    message: str
    total_clients: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[UpdateError] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class KeywordRanking(BaseModel):
    """Latest weekly ranking of a tracked keyword."""

    keyword_id: int
    keyword: str
    priority: int = 0
    avg_position: float | None = None
    position_change: float | None = None
    position_change_percent: float | None = None
    impressions: int | None = None
    clicks: int | None = None
    ctr: float | None = None
    ranking_url: str | None = None
    week_start_date: date | None = None


class KeywordTrendPoint(BaseModel):
    week_start_date: date
    avg_position: float
    impressions: int
    clicks: int
    ctr: float
    position_change: float | None = None

"""Pydantic models for PageSpeed Insights and Chrome UX Report data."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Strategy(str, Enum):
    """PageSpeed analysis strategy."""

    MOBILE = "mobile"
    DESKTOP = "desktop"


class FormFactor(str, Enum):
    """CrUX form factor."""

    PHONE = "PHONE"
    DESKTOP = "DESKTOP"


class CategoryScores(BaseModel):
    """Lighthouse category scores on a 0-100 scale."""

    performance: int = 0
    accessibility: int = 0
    best_practices: int = 0
    seo: int = 0


class LabMetrics(BaseModel):
    """Lighthouse lab metrics (milliseconds, CLS unitless)."""

    fcp: float = Field(default=0, description="First Contentful Paint")
    lcp: float = Field(default=0, description="Largest Contentful Paint")
    tbt: float = Field(default=0, description="Total Blocking Time")
    cls: float = Field(default=0, description="Cumulative Layout Shift")
    si: float = Field(default=0, description="Speed Index")
    tti: float = Field(default=0, description="Time to Interactive")


class AuditItem(BaseModel):
    """A failing Lighthouse audit."""

    id: str
    title: str | None = None
    description: str | None = None
    score: float | None = None
    savings_ms: float | None = None


class PageSpeedResult(BaseModel):
    """Normalized PageSpeed Insights response."""

    url: str | None = None
    fetch_time: str | None = None
    scores: CategoryScores = Field(default_factory=CategoryScores)
    metrics: LabMetrics = Field(default_factory=LabMetrics)
    opportunities: list[AuditItem] = Field(default_factory=list)
    diagnostics: list[AuditItem] = Field(default_factory=list)
    raw_data: dict[str, Any] | None = Field(default=None, description="Original API response")


class PageSpeedOutcome(BaseModel):
    """Result of a cached PageSpeed lookup, including fallback information."""

    url: str
    strategy: Strategy
    result: PageSpeedResult | None = None
    from_cache: bool = False
    cached_at: datetime | None = None
    fetched_at: datetime | None = None
    warning: str | None = None
    error: str | None = None
    recommendation: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.error is None


class FieldMetrics(BaseModel):
    """75th percentile field metrics from CrUX."""

    lcp: float = Field(default=0, description="Largest Contentful Paint (ms)")
    inp: float = Field(default=0, description="Interaction to Next Paint (ms)")
    cls: float = Field(default=0, description="Cumulative Layout Shift")
    fcp: float | None = Field(default=None, description="First Contentful Paint (ms)")
    ttfb: float | None = Field(default=None, description="Time to First Byte (ms)")


class CollectionPeriod(BaseModel):
    start: str
    end: str


class CoreWebVitals(BaseModel):
    """Real-user Core Web Vitals for one URL or origin and form factor."""

    url: str | None = None
    origin: str | None = None
    form_factor: FormFactor
    metrics: FieldMetrics
    grade: str
    collection_period: CollectionPeriod
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    from_cache: bool = False

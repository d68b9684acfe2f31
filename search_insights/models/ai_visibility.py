"""Pydantic models for AI citation tracking."""

from typing import Literal

from pydantic import BaseModel, Field

Sentiment = Literal["positive", "neutral", "negative"]


class CitationResult(BaseModel):
    """Whether a brand was mentioned or cited in one AI answer."""

    query: str
    response_text: str = ""
    citations: list[str] = Field(default_factory=list)
    brand_mentioned: bool = False
    citation_position: int | None = None
    cited_url: str | None = None
    sentiment: Sentiment = "neutral"
    context: str | None = None


class SentimentCounts(BaseModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class VisibilityScores(BaseModel):
    """Aggregate visibility of a brand across checked queries."""

    keywords_checked: int = 0
    citations_found: int = 0
    mentions_found: int = 0
    share_of_voice: int = 0
    sentiment_score: int = 50
    overall_score: int = 0
    prominence_score: float = 0
    sentiment: SentimentCounts = Field(default_factory=SentimentCounts)


class CitationRunSummary(BaseModel):
    client_report_id: int
    summary: VisibilityScores
    details: list[CitationResult] = Field(default_factory=list)

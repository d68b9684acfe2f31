"""Brand mention, citation and sentiment analysis of AI answers."""

import re
from collections.abc import Sequence

from search_insights.models.ai_visibility import (
    CitationResult,
    Sentiment,
    SentimentCounts,
    VisibilityScores,
)

POSITIVE_WORDS = (
    "best", "excellent", "great", "top", "leading",
    "innovative", "trusted", "reliable", "quality", "recommended",
)
NEGATIVE_WORDS = (
    "poor", "bad", "worst", "issue", "problem",
    "complaint", "fail", "disappointing", "avoid",
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_DOMAIN_PREFIXES = ("sc-domain:", "https://", "http://", "www.")


def normalize_domain(domain: str) -> str:
    """Lowercase a domain and strip scheme, ``www.`` and ``sc-domain:`` prefixes."""
    cleaned = (domain or "").strip().lower()
    changed = True
    while changed:
        changed = False
        for prefix in _DOMAIN_PREFIXES:
            if cleaned.startswith(prefix):
                cleaned = cleaned[len(prefix):]
                changed = True
    return cleaned.rstrip("/")


def _matches(text: str, brand_name: str, domain: str) -> bool:
    lowered = text.lower()
    brand = (brand_name or "").lower()
    cleaned_domain = normalize_domain(domain)
    return bool((brand and brand in lowered) or (cleaned_domain and cleaned_domain in lowered))


def check_brand_mention(text: str, brand_name: str, domain: str) -> bool:
    """Whether the brand name or domain appears in the answer text."""
    return _matches(text, brand_name, domain)


def check_domain_citation(citations: Sequence[str], domain: str) -> tuple[int | None, str | None]:
    """1-based position and URL of the first citation pointing at ``domain``."""
    cleaned = normalize_domain(domain)
    if not cleaned:
        return None, None

    for index, citation in enumerate(citations, 1):
        if cleaned in citation.lower():
            return index, citation

    return None, None


def extract_context(text: str, brand_name: str, domain: str) -> str | None:
    """Two sentences either side of the first sentence mentioning the brand."""
    sentences = _SENTENCE_SPLIT.split(text)

    for i, sentence in enumerate(sentences):
        if _matches(sentence, brand_name, domain):
            start = max(0, i - 2)
            end = min(len(sentences), i + 3)
            return ". ".join(sentences[start:end]).strip()

    return None


def analyze_sentiment(text: str, brand_name: str) -> Sentiment:
    """Keyword-count sentiment of the context around a brand mention."""
    context = extract_context(text, brand_name, brand_name)
    if not context:
        return "neutral"

    lowered = context.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)

    if positive > negative and positive > 0:
        return "positive"
    if negative > positive and negative > 0:
        return "negative"
    return "neutral"


def analyze_answer(
    query: str,
    response_text: str,
    citations: Sequence[str],
    brand_name: str,
    domain: str,
) -> CitationResult:
    """Build a :class:`CitationResult` for one AI answer."""
    mentioned = check_brand_mention(response_text, brand_name, domain)
    position, cited_url = check_domain_citation(citations, domain)

    return CitationResult(
        query=query,
        response_text=response_text,
        citations=list(citations),
        brand_mentioned=mentioned,
        citation_position=position,
        cited_url=cited_url,
        sentiment=analyze_sentiment(response_text, brand_name) if mentioned else "neutral",
        context=extract_context(response_text, brand_name, domain) if mentioned else None,
    )


def calculate_visibility_scores(results: Sequence[CitationResult]) -> VisibilityScores:
    """
    Aggregate per-query results into profile scores.

    Sentiment score weights positive answers 100 and neutral 50; share of voice
    counts mentions and citations separately, so a query can contribute twice.
    """
    counts = SentimentCounts()
    citations_found = 0
    mentions_found = 0

    for result in results:
        if result.cited_url:
            citations_found += 1
        if result.brand_mentioned:
            mentions_found += 1
        setattr(counts, result.sentiment, getattr(counts, result.sentiment) + 1)

    total = len(results)
    if total > 0:
        sentiment_score = round((counts.positive * 100 + counts.neutral * 50) / total)
        share_of_voice = round((mentions_found + citations_found) / total * 100)
    else:
        sentiment_score = 50
        share_of_voice = 0

    return VisibilityScores(
        keywords_checked=total,
        citations_found=citations_found,
        mentions_found=mentions_found,
        share_of_voice=share_of_voice,
        sentiment_score=sentiment_score,
        overall_score=round((share_of_voice + sentiment_score) / 2),
        prominence_score=100 / (citations_found * 10) if citations_found > 0 else 0,
        sentiment=counts,
    )

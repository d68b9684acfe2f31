"""FastAPI application for the Search Insights reporting service."""

import logging
import secrets
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

# Add project root to path for serverless deployments
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from search_insights import __version__
from search_insights.config import Settings, get_settings
from search_insights.db.repository import Repository
from search_insights.google.data_validator import validate_search_console_data
from search_insights.models.performance import Strategy
from search_insights.services.ai_visibility import AIVisibilityService
from search_insights.services.crux_service import CrUXService
from search_insights.services.errors import ServiceError
from search_insights.services.keyword_tracker import KeywordTracker
from search_insights.services.pagespeed_service import PageSpeedService
from search_insights.services.report_data import (
    AnalyticsReportService,
    ComprehensiveMetricsService,
    SearchConsoleReportService,
)
from search_insights.services.token_manager import GoogleTokenManager
from search_insights.utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Cache-Control max-age per data type (seconds); stale-while-revalidate is twice that
CACHE_CONFIG = {
    "analytics": 300,
    "search_console": 300,
    "pagespeed": 3600,
}


@lru_cache
def get_repository() -> Repository:
    """Shared repository; tables are created on first use."""
    repo = Repository()
    repo.create_tables()
    return repo


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(repository=get_repository() if settings.debug_db_logs else None)
    logger.info(f"Search Insights API starting ({settings.environment})")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Search Insights Hub",
    description="SEO and AI-visibility reporting over Search Console, GA4, PageSpeed Insights, CrUX and Perplexity",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for API access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content: dict[str, Any] = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc),
            "type": type(exc).__name__,
            "path": str(request.url.path),
        },
    )


def set_cache_headers(response: Response, data_type: str) -> None:
    max_age = CACHE_CONFIG[data_type]
    response.headers["Cache-Control"] = f"public, max-age={max_age}, stale-while-revalidate={max_age * 2}"


# Service dependencies (overridden in tests). Services owning API clients are
# closed when the request finishes.


async def get_pagespeed_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[PageSpeedService]:
    async with PageSpeedService(repo, settings=settings) as service:
        yield service


async def get_crux_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[CrUXService]:
    async with CrUXService(repo, settings=settings) as service:
        yield service


async def get_token_manager(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[GoogleTokenManager]:
    async with GoogleTokenManager(repo, settings=settings) as manager:
        yield manager


def get_search_console_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> SearchConsoleReportService:
    return SearchConsoleReportService(repo, settings=settings)


def get_analytics_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AnalyticsReportService:
    return AnalyticsReportService(repo, settings=settings)


def get_comprehensive_metrics_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> ComprehensiveMetricsService:
    return ComprehensiveMetricsService(repo, settings=settings)


def get_keyword_tracker(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
    token_manager: GoogleTokenManager = Depends(get_token_manager),
) -> KeywordTracker:
    return KeywordTracker(repo, token_manager=token_manager, settings=settings)


async def get_ai_visibility_service(
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[AIVisibilityService]:
    async with AIVisibilityService(repo, settings=settings) as service:
        yield service


# Request Models
class PageSpeedRequest(BaseModel):
    """Request model for a single PageSpeed lookup."""

    url: str | None = Field(default=None, description="Page to analyze")
    strategy: Strategy = Field(default=Strategy.MOBILE)


class PageSpeedBatchRequest(BaseModel):
    urls: list[str] = Field(..., min_length=1, max_length=50)
    strategy: Strategy = Field(default=Strategy.MOBILE)


class SearchConsoleRequest(BaseModel):
    """Request model for a Search Console fetch."""

    report_id: int | None = None
    properties: list[str] | None = None
    date_range: str = Field(default="last30days", description="last7days, last30days or last90days")
    google_account_id: int | None = None
    compare: bool = Field(default=False, description="Also compare with the previous period")


class AnalyticsRequest(BaseModel):
    property_id: str | None = None
    date_range: str = "last30days"
    report_id: int | None = None
    google_account_id: int | None = None


class ComprehensiveMetricsRequest(BaseModel):
    report_id: int | None = None
    google_account_id: int | None = None


class CitationCheckRequest(BaseModel):
    client_report_id: int | None = None


def _bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


async def resolve_google_token(
    authorization: str | None,
    google_account_id: int | None,
    report_id: int | None,
    repo: Repository,
    token_manager: GoogleTokenManager,
) -> str:
    """Bearer token from the request, else a token of the given or the report's Google account."""
    token = _bearer_token(authorization)
    if token:
        return token

    account_id = google_account_id
    if account_id is None and report_id is not None:
        report = repo.get_client_report(report_id)
        if report is not None:
            account_id = report.google_account_id

    if account_id is not None:
        token = await token_manager.get_valid_token(account_id)

    if not token:
        raise HTTPException(status_code=401, detail="Google authentication required")
    return token


# API Routes


@app.get("/api/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    repo: Repository = Depends(get_repository),
):
    """Health check endpoint."""
    database_ok = repo.ping()
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "environment": settings.environment,
        "database": database_ok,
        "integrations": {
            "pagespeed": settings.psi_configured,
            "crux": settings.crux_configured,
            "perplexity": settings.perplexity_configured,
            "google_oauth": settings.google_oauth_configured,
        },
    }


@app.get("/api/stats")
async def get_stats(repo: Repository = Depends(get_repository)):
    """Get database statistics."""
    return repo.get_statistics()


@app.post("/api/data/pagespeed")
async def fetch_pagespeed(
    request: PageSpeedRequest,
    response: Response,
    service: PageSpeedService = Depends(get_pagespeed_service),
):
    """PageSpeed Insights for one URL, served from cache when fresh."""
    if not request.url:
        raise HTTPException(status_code=400, detail="URL is required")

    outcome = await service.get_pagespeed_data(request.url, request.strategy)
    if outcome.result is not None:
        set_cache_headers(response, "pagespeed")
    return outcome.model_dump(mode="json", exclude={"result": {"raw_data"}})


@app.post("/api/data/pagespeed/batch")
async def fetch_pagespeed_batch(
    request: PageSpeedBatchRequest,
    service: PageSpeedService = Depends(get_pagespeed_service),
):
    outcomes = await service.batch_fetch(request.urls, request.strategy)
    return {
        "strategy": request.strategy.value,
        "count": len(outcomes),
        "results": [o.model_dump(mode="json", exclude={"result": {"raw_data"}}) for o in outcomes],
    }


@app.get("/api/data/core-web-vitals")
async def get_core_web_vitals(
    response: Response,
    url: str = Query(..., description="Page URL"),
    service: CrUXService = Depends(get_crux_service),
):
    """Real-user Core Web Vitals for mobile and desktop."""
    vitals = await service.get_core_web_vitals(url)
    set_cache_headers(response, "pagespeed")
    return {
        "url": url,
        "mobile": vitals["mobile"].model_dump(mode="json") if vitals["mobile"] else None,
        "desktop": vitals["desktop"].model_dump(mode="json") if vitals["desktop"] else None,
    }


@app.post("/api/data/fetch-search-console")
async def fetch_search_console(
    request: SearchConsoleRequest,
    response: Response,
    authorization: str | None = Header(default=None),
    repo: Repository = Depends(get_repository),
    token_manager: GoogleTokenManager = Depends(get_token_manager),
    service: SearchConsoleReportService = Depends(get_search_console_service),
):
    """Combined Search Console data for a report or an explicit list of properties."""
    if request.report_id is None and not request.properties:
        raise HTTPException(status_code=400, detail="Report ID or properties required")

    token = await resolve_google_token(
        authorization, request.google_account_id, request.report_id, repo, token_manager
    )
    report = await service.fetch(
        token,
        report_id=request.report_id,
        properties=request.properties,
        date_range=request.date_range,
    )

    result: dict[str, Any] = {
        "success": True,
        "data": report.model_dump(mode="json", exclude={"date_range"}),
        "date_range": report.date_range.model_dump() if report.date_range else None,
    }
    if request.compare:
        comparisons = await service.compare_periods(
            token,
            report_id=request.report_id,
            properties=request.properties,
            date_range=request.date_range,
            current=report,
        )
        result["comparisons"] = {name: c.model_dump() for name, c in comparisons.items()}

    set_cache_headers(response, "search_console")
    return result


@app.post("/api/data/fetch-analytics")
async def fetch_analytics(
    request: AnalyticsRequest,
    response: Response,
    authorization: str | None = Header(default=None),
    repo: Repository = Depends(get_repository),
    token_manager: GoogleTokenManager = Depends(get_token_manager),
    service: AnalyticsReportService = Depends(get_analytics_service),
):
    """Processed GA4 traffic report."""
    property_id = request.property_id
    if not property_id and request.report_id is not None:
        report = repo.get_client_report(request.report_id)
        property_id = report.ga4_property_id if report else None
    if not property_id:
        raise HTTPException(status_code=400, detail="Property ID is required")

    token = await resolve_google_token(
        authorization, request.google_account_id, request.report_id, repo, token_manager
    )
    report = await service.fetch(
        token,
        property_id,
        date_range=request.date_range,
        report_id=request.report_id,
    )

    set_cache_headers(response, "analytics")
    return {"success": True, "analytics": report.model_dump(mode="json")}


@app.post("/api/data/fetch-comprehensive-metrics")
async def fetch_comprehensive_metrics(
    request: ComprehensiveMetricsRequest,
    authorization: str | None = Header(default=None),
    repo: Repository = Depends(get_repository),
    token_manager: GoogleTokenManager = Depends(get_token_manager),
    service: ComprehensiveMetricsService = Depends(get_comprehensive_metrics_service),
):
    """Week-, month- and year-over-year Search Console and GA4 metrics for a report."""
    if request.report_id is None:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if repo.get_client_report(request.report_id) is None:
        raise HTTPException(status_code=404, detail="Report not found")

    token = await resolve_google_token(
        authorization, request.google_account_id, request.report_id, repo, token_manager
    )
    metrics = await service.fetch(token, request.report_id)
    return metrics.model_dump(mode="json")


@app.post("/api/data/validate-search-console")
async def validate_search_console(payload: dict[str, Any], settings: Settings = Depends(get_settings)):
    """Validate a Search Console payload (summary plus by-date rows)."""
    result = validate_search_console_data(payload, stale_threshold_days=settings.stale_data_threshold_days)
    return result.model_dump(mode="json")


@app.get("/api/reports/{report_id}/keywords")
async def get_report_keywords(report_id: int, tracker: KeywordTracker = Depends(get_keyword_tracker)):
    """Current rankings of a report's tracked keywords."""
    rankings = tracker.get_rankings(report_id)
    return {
        "report_id": report_id,
        "count": len(rankings),
        "keywords": [r.model_dump(mode="json") for r in rankings],
    }


@app.get("/api/keywords/{keyword_id}/trends")
async def get_keyword_trends(
    keyword_id: int,
    weeks: int = Query(default=12, ge=1, le=104, description="Number of weeks of history"),
    tracker: KeywordTracker = Depends(get_keyword_tracker),
):
    trends = tracker.get_trends(keyword_id, weeks)
    return {
        "keyword_id": keyword_id,
        "weeks": weeks,
        "trends": [t.model_dump(mode="json") for t in trends],
    }


@app.post("/api/cron/update-keywords")
async def run_keyword_update(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    tracker: KeywordTracker = Depends(get_keyword_tracker),
):
    """Weekly keyword update, triggered by the scheduler with the cron secret."""
    cron_secret = settings.cron_secret.get_secret_value()
    token = _bearer_token(authorization)
    if not cron_secret or not token or not secrets.compare_digest(token, cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")

    summary = await tracker.update_all()
    return {"success": True, **summary.model_dump(mode="json")}


@app.get("/api/cron/update-keywords")
async def run_keyword_update_manually(
    settings: Settings = Depends(get_settings),
    tracker: KeywordTracker = Depends(get_keyword_tracker),
):
    """Manual trigger of the keyword update, available in development only."""
    if not settings.is_development:
        raise HTTPException(status_code=404, detail="Not found")

    logger.info("Manual keyword update triggered")
    summary = await tracker.update_all()
    return {"success": True, **summary.model_dump(mode="json")}


@app.post("/api/ai-visibility/check-citations")
async def check_citations(
    request: CitationCheckRequest,
    service: AIVisibilityService = Depends(get_ai_visibility_service),
):
    """Check Perplexity answers for the client's brand and domain."""
    if request.client_report_id is None:
        raise HTTPException(status_code=400, detail="client_report_id is required")

    run = await service.check_citations(request.client_report_id)
    return {
        "success": True,
        "message": "Citations checked successfully",
        **run.model_dump(mode="json"),
    }


@app.get("/api/ai-visibility/check-citations")
async def get_citation_profile(
    client_report_id: int = Query(...),
    service: AIVisibilityService = Depends(get_ai_visibility_service),
):
    """Stored AI visibility profile with its recent citations."""
    return service.get_profile(client_report_id)

"""Weekly keyword rank tracking from Search Console."""

import asyncio
import logging
import math
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from search_insights.calculators.metrics import calculate_ctr
from search_insights.clients.search_console import SearchConsoleClient
from search_insights.config import Settings, get_settings
from search_insights.db.models import ClientReport, Keyword
from search_insights.db.repository import Repository
from search_insights.models.keyword import (
    UNRANKED_POSITION,
    AlertType,
    KeywordPerformanceRecord,
    KeywordRanking,
    KeywordTrendPoint,
    KeywordUpdateSummary,
    UpdateError,
)
from search_insights.services.errors import ResourceNotFoundError, ServiceError
from search_insights.services.token_manager import GoogleTokenManager
from search_insights.utils.dates import get_tracking_window

logger = logging.getLogger(__name__)

LOG_SOURCE = "cron/update-keywords"

# Positions moved before an alert is raised
ALERT_POSITION_THRESHOLD = 5
FIRST_PAGE_POSITION = 10

NO_CLIENTS_MESSAGE = "No clients with tracked keywords found"


class KeywordTracker:
    """
    Records one week of Search Console performance per tracked keyword.

    The week ends ``gsc_data_delay_days`` before today. Weeks already stored
    for a keyword are left untouched, so the job can be re-run safely.
    """

    def __init__(
        self,
        repository: Repository,
        token_manager: GoogleTokenManager | None = None,
        settings: Settings | None = None,
        client_factory: Callable[[str], SearchConsoleClient] | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.token_manager = token_manager or GoogleTokenManager(repository, settings=self.settings)
        self.client_factory = client_factory or (
            lambda token: SearchConsoleClient(token, settings=self.settings)
        )

    async def close(self) -> None:
        await self.token_manager.close()

    async def __aenter__(self) -> "KeywordTracker":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def update_all(self, today: date | None = None) -> KeywordUpdateSummary:
        """Update every active report with active keywords, one report at a time."""
        reports = self.repository.get_active_reports_with_keywords()
        logger.info(f"Updating keywords for {len(reports)} client reports")

        if not reports:
            return KeywordUpdateSummary(message=NO_CLIENTS_MESSAGE)

        summary = KeywordUpdateSummary(message="Keyword update completed", total_clients=len(reports))

        for i, report in enumerate(reports):
            try:
                records = await self.update_client_keywords(report, today=today)
                summary.updated += 1
                logger.info(f"Updated {len(records)} keywords for {report.client_name}")
            except Exception as e:
                logger.error(f"Failed to update keywords for report {report.id}: {e}")
                summary.failed += 1
                summary.errors.append(UpdateError(report_id=report.id, error=str(e)))

            if i < len(reports) - 1 and self.settings.client_rate_limit_delay > 0:
                await asyncio.sleep(self.settings.client_rate_limit_delay)

        summary.timestamp = datetime.utcnow()
        self.repository.write_log(
            level="info",
            source=LOG_SOURCE,
            message="Weekly keyword update completed",
            meta=summary.model_dump(mode="json", exclude={"message"}),
        )
        return summary

    async def update_client_keywords(
        self,
        report: ClientReport,
        today: date | None = None,
    ) -> list[KeywordPerformanceRecord]:
        """
        Record this week's performance for all active keywords of ``report``.

        Raises:
            ServiceError: The report has no Search Console property or no usable Google token
        """
        if not report.search_console_property_id:
            raise ServiceError(f"Report {report.id} has no Search Console property")
        if not report.google_account_id:
            raise ServiceError(f"Report {report.id} has no connected Google account")

        access_token = await self.token_manager.get_valid_token(report.google_account_id)
        if not access_token:
            raise ServiceError("No valid Google token")

        start, end = get_tracking_window(today, delay_days=self.settings.gsc_data_delay_days)
        keywords = self.repository.get_active_keywords(report.id)

        records: list[KeywordPerformanceRecord] = []
        async with self.client_factory(access_token) as client:
            for i, keyword in enumerate(keywords):
                try:
                    records.append(
                        await self._measure_keyword(client, report.search_console_property_id, keyword, start, end)
                    )
                except Exception as e:
                    logger.error(f"Error processing keyword '{keyword.keyword}': {e}")

                if i < len(keywords) - 1 and self.settings.keyword_rate_limit_delay > 0:
                    await asyncio.sleep(self.settings.keyword_rate_limit_delay)

        if records:
            self.repository.save_keyword_performance(records)
            self.check_alerts(records)

        return records

    async def _measure_keyword(
        self,
        client: SearchConsoleClient,
        site_url: str,
        keyword: Keyword,
        start: date,
        end: date,
    ) -> KeywordPerformanceRecord:
        previous = self.repository.get_latest_performance(keyword.id)

        query_row, page_row = await asyncio.gather(
            client.query_keyword(site_url, keyword.keyword, start, end, dimension="query"),
            client.query_keyword(site_url, keyword.keyword, start, end, dimension="page"),
        )

        query_row = query_row or {}
        current_position = query_row.get("position") or UNRANKED_POSITION
        clicks = int(query_row.get("clicks") or 0)
        impressions = int(query_row.get("impressions") or 0)

        position_change = None
        if previous is not None:
            position_change = previous.avg_position - current_position

        ranking_url = None
        if page_row and page_row.get("keys"):
            ranking_url = page_row["keys"][0]

        return KeywordPerformanceRecord(
            keyword_id=keyword.id,
            week_start_date=start,
            week_end_date=end,
            avg_position=current_position,
            best_position=math.floor(current_position),
            impressions=impressions,
            clicks=clicks,
            ctr=query_row.get("ctr") if query_row.get("ctr") is not None else calculate_ctr(clicks, impressions),
            ranking_url=ranking_url,
            position_change=position_change,
        )

    def check_alerts(self, records: list[KeywordPerformanceRecord]) -> list[tuple[int, AlertType]]:
        """Raise ranking alerts for significant moves. Existing alerts of the same type are kept."""
        raised = []
        for record in records:
            change = record.position_change
            if change is None:
                continue

            alerts: list[tuple[AlertType, float | None]] = []
            if change > ALERT_POSITION_THRESHOLD:
                alerts.append((AlertType.POSITION_IMPROVED, ALERT_POSITION_THRESHOLD))
            elif change < -ALERT_POSITION_THRESHOLD:
                alerts.append((AlertType.POSITION_DECLINED, -ALERT_POSITION_THRESHOLD))

            if record.avg_position <= FIRST_PAGE_POSITION and change > 0:
                alerts.append((AlertType.FIRST_PAGE_ACHIEVED, FIRST_PAGE_POSITION))

            for alert_type, threshold in alerts:
                if self.repository.create_alert(record.keyword_id, alert_type.value, threshold):
                    logger.info(f"Alert {alert_type.value} raised for keyword {record.keyword_id}")
                    raised.append((record.keyword_id, alert_type))

        return raised

    def get_rankings(self, report_id: int) -> list[KeywordRanking]:
        if self.repository.get_client_report(report_id) is None:
            raise ResourceNotFoundError(f"Report {report_id} not found")
        return self.repository.get_keyword_rankings(report_id)

    def get_trends(self, keyword_id: int, weeks: int = 12) -> list[KeywordTrendPoint]:
        if self.repository.get_keyword(keyword_id) is None:
            raise ResourceNotFoundError(f"Keyword {keyword_id} not found")
        return self.repository.get_keyword_trends(keyword_id, weeks)

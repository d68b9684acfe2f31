"""Database repository for reports, keyword tracking and measurement caches."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import create_engine, delete, desc, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from search_insights.calculators.metrics import calculate_position_change
from search_insights.config import Settings, get_settings
from search_insights.db.models import (
    AICitation,
    AIVisibilityProfile,
    Base,
    ClientReport,
    CWVMeasurement,
    GoogleAccount,
    Keyword,
    KeywordAlert,
    KeywordPerformance,
    LogEntry,
    PageAudit,
    ReportCache,
)
from search_insights.models.ai_visibility import CitationResult, VisibilityScores
from search_insights.models.keyword import (
    KeywordPerformanceRecord,
    KeywordRanking,
    KeywordTrendPoint,
    TrackingStatus,
)
from search_insights.models.performance import CoreWebVitals

logger = logging.getLogger(__name__)


class Repository:
    """Repository for all database operations."""

    def __init__(self, database_url: str | None = None, settings: Settings | None = None):
        settings = settings or get_settings()
        self.database_url = database_url or settings.database_url

        # SQLAlchemy requires the postgresql:// scheme
        if self.database_url.startswith("postgres://"):
            self.database_url = self.database_url.replace("postgres://", "postgresql://", 1)

        self.engine = create_engine(self.database_url, echo=False)
        # Rows are returned to callers after the session closes
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._is_postgres = self.database_url.startswith("postgresql")

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self.engine, checkfirst=True)
        logger.info("Database tables created/verified")

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def _insert(self, model: type[Base]):
        return pg_insert(model) if self._is_postgres else sqlite_insert(model)

    # Client reports

    def create_client_report(
        self,
        client_name: str,
        domain: str | None = None,
        search_console_property_id: str | None = None,
        ga4_property_id: str | None = None,
        google_account_id: int | None = None,
        share_token: str | None = None,
    ) -> ClientReport:
        with self.get_session() as session:
            report = ClientReport(
                client_name=client_name,
                domain=domain,
                search_console_property_id=search_console_property_id,
                ga4_property_id=ga4_property_id,
                google_account_id=google_account_id,
                share_token=share_token,
            )
            session.add(report)
            session.commit()
            return report

    def get_client_report(self, report_id: int) -> ClientReport | None:
        with self.get_session() as session:
            return session.get(ClientReport, report_id)

    def get_active_reports_with_keywords(self) -> list[ClientReport]:
        """Active client reports having at least one active keyword."""
        with self.get_session() as session:
            has_keywords = (
                select(Keyword.id)
                .where(Keyword.client_report_id == ClientReport.id)
                .where(Keyword.tracking_status == TrackingStatus.ACTIVE.value)
                .exists()
            )
            stmt = (
                select(ClientReport)
                .where(ClientReport.is_active.is_(True))
                .where(has_keywords)
                .order_by(ClientReport.id)
            )
            return list(session.execute(stmt).scalars().all())

    # Keywords

    def add_keywords(self, report_id: int, keywords: Iterable[str], priority: int = 0) -> int:
        """
        Add keywords to a report, skipping ones already tracked.

        Returns:
            Number of keywords inserted
        """
        values = [
            {
                "client_report_id": report_id,
                "keyword": kw.strip(),
                "tracking_status": TrackingStatus.ACTIVE.value,
                "priority": priority,
                "created_at": datetime.utcnow(),
            }
            for kw in dict.fromkeys(keywords)
            if kw and kw.strip()
        ]
        if not values:
            return 0

        with self.get_session() as session:
            stmt = self._insert(Keyword).values(values)
            stmt = stmt.on_conflict_do_nothing(index_elements=["client_report_id", "keyword"])
            result = session.execute(stmt)
            session.commit()
            return result.rowcount or 0

    def get_active_keywords(self, report_id: int, limit: int | None = None) -> list[Keyword]:
        with self.get_session() as session:
            stmt = (
                select(Keyword)
                .where(Keyword.client_report_id == report_id)
                .where(Keyword.tracking_status == TrackingStatus.ACTIVE.value)
                .order_by(desc(Keyword.priority), Keyword.id)
            )
            if limit:
                stmt = stmt.limit(limit)
            return list(session.execute(stmt).scalars().all())

    def get_keyword(self, keyword_id: int) -> Keyword | None:
        with self.get_session() as session:
            return session.get(Keyword, keyword_id)

    # Keyword performance

    def get_latest_performance(self, keyword_id: int) -> KeywordPerformance | None:
        """Most recent weekly snapshot of a keyword."""
        with self.get_session() as session:
            stmt = (
                select(KeywordPerformance)
                .where(KeywordPerformance.keyword_id == keyword_id)
                .order_by(desc(KeywordPerformance.week_start_date))
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def save_keyword_performance(self, records: list[KeywordPerformanceRecord]) -> int:
        """
        Insert weekly snapshots, ignoring weeks already stored for a keyword.

        Returns:
            Number of rows inserted
        """
        if not records:
            return 0

        values = [{**record.model_dump(), "created_at": datetime.utcnow()} for record in records]

        with self.get_session() as session:
            stmt = self._insert(KeywordPerformance).values(values)
            stmt = stmt.on_conflict_do_nothing(index_elements=["keyword_id", "week_start_date"])
            result = session.execute(stmt)
            session.commit()
            inserted = result.rowcount or 0

        if inserted < len(records):
            logger.info(f"Skipped {len(records) - inserted} already-recorded keyword weeks")
        return inserted

    def get_keyword_rankings(self, report_id: int) -> list[KeywordRanking]:
        """Latest week of every active keyword of a report, by priority."""
        with self.get_session() as session:
            keywords = session.execute(
                select(Keyword)
                .where(Keyword.client_report_id == report_id)
                .where(Keyword.tracking_status == TrackingStatus.ACTIVE.value)
                .order_by(desc(Keyword.priority), Keyword.keyword)
            ).scalars().all()

            rankings = []
            for kw in keywords:
                history = session.execute(
                    select(KeywordPerformance)
                    .where(KeywordPerformance.keyword_id == kw.id)
                    .order_by(desc(KeywordPerformance.week_start_date))
                    .limit(2)
                ).scalars().all()

                ranking = KeywordRanking(keyword_id=kw.id, keyword=kw.keyword, priority=kw.priority)
                if history:
                    latest = history[0]
                    ranking.avg_position = latest.avg_position
                    ranking.position_change = latest.position_change
                    ranking.impressions = latest.impressions
                    ranking.clicks = latest.clicks
                    ranking.ctr = latest.ctr
                    ranking.ranking_url = latest.ranking_url
                    ranking.week_start_date = latest.week_start_date
                    if len(history) > 1:
                        ranking.position_change_percent = calculate_position_change(
                            latest.avg_position, history[1].avg_position
                        )
                rankings.append(ranking)

            return rankings

    def get_keyword_trends(self, keyword_id: int, weeks: int = 12) -> list[KeywordTrendPoint]:
        """Weekly history of a keyword, oldest first."""
        with self.get_session() as session:
            rows = session.execute(
                select(KeywordPerformance)
                .where(KeywordPerformance.keyword_id == keyword_id)
                .order_by(desc(KeywordPerformance.week_start_date))
                .limit(weeks)
            ).scalars().all()

            return [
                KeywordTrendPoint(
                    week_start_date=row.week_start_date,
                    avg_position=row.avg_position,
                    impressions=row.impressions,
                    clicks=row.clicks,
                    ctr=row.ctr,
                    position_change=row.position_change,
                )
                for row in reversed(rows)
            ]

    def create_alert(self, keyword_id: int, alert_type: str, threshold: float | None = None) -> bool:
        """
        Record a ranking alert. An alert of the same type already on the keyword is kept.

        Returns:
            True when a new alert row was inserted
        """
        with self.get_session() as session:
            stmt = self._insert(KeywordAlert).values(
                keyword_id=keyword_id,
                alert_type=alert_type,
                threshold=threshold,
                is_active=True,
                last_triggered=datetime.utcnow(),
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["keyword_id", "alert_type"])
            result = session.execute(stmt)
            session.commit()
            return bool(result.rowcount)

    def get_alerts(self, keyword_id: int) -> list[KeywordAlert]:
        with self.get_session() as session:
            stmt = select(KeywordAlert).where(KeywordAlert.keyword_id == keyword_id).order_by(KeywordAlert.id)
            return list(session.execute(stmt).scalars().all())

    # Google accounts

    def create_google_account(
        self,
        email: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
        expires_at: int | None = None,
        scope: str | None = None,
    ) -> GoogleAccount:
        with self.get_session() as session:
            account = GoogleAccount(
                email=email,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
                scope=scope,
            )
            session.add(account)
            session.commit()
            return account

    def get_google_account(self, account_id: int) -> GoogleAccount | None:
        with self.get_session() as session:
            return session.get(GoogleAccount, account_id)

    def update_google_tokens(
        self,
        account_id: int,
        access_token: str,
        expires_at: int,
        refresh_token: str | None = None,
    ) -> None:
        """Persist a refreshed access token (and a rotated refresh token, if any)."""
        with self.get_session() as session:
            account = session.get(GoogleAccount, account_id)
            if account is None:
                raise ValueError(f"Google account {account_id} not found")
            account.access_token = access_token
            account.expires_at = expires_at
            if refresh_token:
                account.refresh_token = refresh_token
            session.commit()

    # PageSpeed audits

    def get_latest_page_audit(self, url: str, strategy: str, source: str = "PSI") -> PageAudit | None:
        with self.get_session() as session:
            stmt = (
                select(PageAudit)
                .where(PageAudit.url == url)
                .where(PageAudit.strategy == strategy)
                .where(PageAudit.source == source)
                .order_by(desc(PageAudit.collected_at), desc(PageAudit.id))
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def save_page_audit(
        self,
        url: str,
        strategy: str,
        raw_json: dict[str, Any],
        source: str = "PSI",
        collected_at: datetime | None = None,
    ) -> PageAudit:
        with self.get_session() as session:
            audit = PageAudit(
                url=url,
                strategy=strategy,
                source=source,
                raw_json=raw_json,
                collected_at=collected_at or datetime.utcnow(),
            )
            session.add(audit)
            session.commit()
            return audit

    # Core Web Vitals

    def get_latest_cwv(self, url: str, form_factor: str) -> CWVMeasurement | None:
        with self.get_session() as session:
            stmt = (
                select(CWVMeasurement)
                .where(CWVMeasurement.url == url)
                .where(CWVMeasurement.form_factor == form_factor)
                .order_by(desc(CWVMeasurement.collected_at), desc(CWVMeasurement.id))
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def save_cwv(
        self,
        url: str,
        vitals: CoreWebVitals,
        collected_at: datetime | None = None,
    ) -> CWVMeasurement:
        """Store field data under the requested URL (even when it came from the origin)."""
        with self.get_session() as session:
            row = CWVMeasurement(
                url=url,
                origin=vitals.origin,
                form_factor=vitals.form_factor.value,
                p75_lcp_ms=vitals.metrics.lcp,
                p75_inp_ms=vitals.metrics.inp,
                p75_cls=vitals.metrics.cls,
                p75_fcp_ms=vitals.metrics.fcp,
                p75_ttfb_ms=vitals.metrics.ttfb,
                grade=vitals.grade,
                window_start=vitals.collection_period.start,
                window_end=vitals.collection_period.end,
                collected_at=collected_at or datetime.utcnow(),
            )
            session.add(row)
            session.commit()
            return row

    # Report cache

    def replace_report_cache(
        self,
        report_id: int,
        data_type: str,
        data: dict[str, Any],
        expires_at: datetime,
    ) -> None:
        """Replace any cached payload of this type for the report."""
        with self.get_session() as session:
            session.execute(
                delete(ReportCache)
                .where(ReportCache.report_id == report_id)
                .where(ReportCache.data_type == data_type)
            )
            session.add(
                ReportCache(report_id=report_id, data_type=data_type, data=data, expires_at=expires_at)
            )
            session.commit()

    def get_report_cache(
        self,
        report_id: int,
        data_type: str,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """Unexpired cached payload, if any."""
        now = now or datetime.utcnow()
        with self.get_session() as session:
            stmt = (
                select(ReportCache)
                .where(ReportCache.report_id == report_id)
                .where(ReportCache.data_type == data_type)
                .where(ReportCache.expires_at > now)
                .order_by(desc(ReportCache.created_at))
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return row.data if row else None

    # AI visibility

    def get_ai_profile(self, client_report_id: int) -> AIVisibilityProfile | None:
        with self.get_session() as session:
            stmt = select(AIVisibilityProfile).where(AIVisibilityProfile.client_report_id == client_report_id)
            return session.execute(stmt).scalar_one_or_none()

    def get_or_create_ai_profile(self, client_report_id: int) -> AIVisibilityProfile:
        with self.get_session() as session:
            stmt = select(AIVisibilityProfile).where(AIVisibilityProfile.client_report_id == client_report_id)
            profile = session.execute(stmt).scalar_one_or_none()
            if profile:
                return profile

            profile = AIVisibilityProfile(
                client_report_id=client_report_id,
                overall_score=0,
                sentiment_score=50,
                share_of_voice=0,
                citation_count=0,
            )
            session.add(profile)
            session.commit()
            logger.info(f"Created AI visibility profile for report {client_report_id}")
            return profile

    def update_ai_profile(self, profile_id: int, scores: VisibilityScores) -> None:
        with self.get_session() as session:
            profile = session.get(AIVisibilityProfile, profile_id)
            if profile is None:
                raise ValueError(f"AI visibility profile {profile_id} not found")
            profile.overall_score = scores.overall_score
            profile.sentiment_score = scores.sentiment_score
            profile.share_of_voice = scores.share_of_voice
            profile.citation_count = scores.citations_found
            profile.last_updated = datetime.utcnow()
            session.commit()

    def save_citation(self, profile_id: int, result: CitationResult, platform: str = "perplexity") -> None:
        with self.get_session() as session:
            session.add(
                AICitation(
                    profile_id=profile_id,
                    platform=platform,
                    query=result.query,
                    response_text=result.response_text,
                    citation_position=result.citation_position,
                    citation_context=result.context,
                    url=result.cited_url,
                    sentiment=result.sentiment,
                )
            )
            session.commit()

    def get_recent_citations(self, profile_id: int, limit: int = 20) -> list[AICitation]:
        with self.get_session() as session:
            stmt = (
                select(AICitation)
                .where(AICitation.profile_id == profile_id)
                .order_by(desc(AICitation.created_at), desc(AICitation.id))
                .limit(limit)
            )
            return list(session.execute(stmt).scalars().all())

    # Logs

    def write_log(
        self,
        level: str,
        source: str | None,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Store a log row. Failures are logged and never raised."""
        try:
            with self.get_session() as session:
                session.add(LogEntry(level=level, source=source, message=message, meta=meta))
                session.commit()
        except Exception as e:
            logger.error(f"Failed to write log entry: {e}")

    def get_logs(self, source: str | None = None, limit: int = 50) -> list[LogEntry]:
        with self.get_session() as session:
            stmt = select(LogEntry)
            if source:
                stmt = stmt.where(LogEntry.source == source)
            stmt = stmt.order_by(desc(LogEntry.created_at), desc(LogEntry.id)).limit(limit)
            return list(session.execute(stmt).scalars().all())

    def get_statistics(self) -> dict[str, Any]:
        """Get database statistics."""
        with self.get_session() as session:
            def count(column) -> int:
                return session.execute(select(func.count(column))).scalar() or 0

            week_ago = date.today() - timedelta(days=7)
            recent_weeks = session.execute(
                select(func.count(KeywordPerformance.id)).where(KeywordPerformance.week_start_date >= week_ago)
            ).scalar() or 0

            status_counts = session.execute(
                select(Keyword.tracking_status, func.count(Keyword.id)).group_by(Keyword.tracking_status)
            ).all()

            return {
                "total_client_reports": count(ClientReport.id),
                "total_keywords": count(Keyword.id),
                "keywords_by_status": {s: c for s, c in status_counts},
                "total_performance_records": count(KeywordPerformance.id),
                "recent_performance_records": recent_weeks,
                "total_page_audits": count(PageAudit.id),
                "total_cwv_measurements": count(CWVMeasurement.id),
                "total_ai_citations": count(AICitation.id),
            }

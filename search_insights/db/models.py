"""SQLAlchemy database models."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class GoogleAccount(Base):
    """Connected Google accounts and their OAuth tokens."""

    __tablename__ = "google_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), nullable=False, unique=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(Integer, nullable=True)  # epoch seconds
    scope = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    reports = relationship("ClientReport", back_populates="google_account")

    def __repr__(self) -> str:
        return f"<GoogleAccount(id={self.id}, email='{self.email}')>"


class ClientReport(Base):
    """A client's report: the site properties being tracked."""

    __tablename__ = "client_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_name = Column(String(200), nullable=False)
    domain = Column(String(255), nullable=True)
    search_console_property_id = Column(String(500), nullable=True)  # https://site/ or sc-domain:site
    ga4_property_id = Column(String(100), nullable=True)
    google_account_id = Column(Integer, ForeignKey("google_accounts.id", ondelete="SET NULL"), nullable=True)
    share_token = Column(String(64), nullable=True, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    google_account = relationship("GoogleAccount", back_populates="reports")
    keywords = relationship("Keyword", back_populates="report", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<ClientReport(id={self.id}, client_name='{self.client_name}')>"


class Keyword(Base):
    """Keywords tracked for a client report."""

    __tablename__ = "keywords"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_report_id = Column(Integer, ForeignKey("client_reports.id", ondelete="CASCADE"), nullable=False)
    keyword = Column(String(500), nullable=False)
    tracking_status = Column(String(20), default="active", nullable=False)  # active, paused, archived
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    report = relationship("ClientReport", back_populates="keywords")
    performance = relationship("KeywordPerformance", back_populates="keyword_rel", cascade="all, delete-orphan")
    alerts = relationship("KeywordAlert", back_populates="keyword_rel", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_keywords_report", "client_report_id"),
        Index("idx_keywords_unique", "client_report_id", "keyword", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Keyword(id={self.id}, keyword='{self.keyword}')>"


class KeywordPerformance(Base):
    """Weekly ranking snapshot for a keyword."""

    __tablename__ = "keyword_performance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword_id = Column(Integer, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    week_start_date = Column(Date, nullable=False)
    week_end_date = Column(Date, nullable=False)
    avg_position = Column(Float, nullable=False)
    best_position = Column(Integer, nullable=True)
    impressions = Column(Integer, default=0, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)
    ctr = Column(Float, default=0.0, nullable=False)
    ranking_url = Column(Text, nullable=True)
    position_change = Column(Float, nullable=True)  # positive = improved
    data_source = Column(String(50), default="search_console", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    keyword_rel = relationship("Keyword", back_populates="performance")

    __table_args__ = (
        Index("idx_keyword_performance_keyword", "keyword_id"),
        Index("idx_keyword_performance_unique", "keyword_id", "week_start_date", unique=True),
    )

    def __repr__(self) -> str:
        return f"<KeywordPerformance(keyword_id={self.keyword_id}, week={self.week_start_date})>"


class KeywordAlert(Base):
    """Ranking alerts raised by the weekly keyword job."""

    __tablename__ = "keyword_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword_id = Column(Integer, ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    alert_type = Column(String(50), nullable=False)  # position_improved, position_declined, first_page_achieved
    threshold = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_triggered = Column(DateTime, default=datetime.utcnow, nullable=True)

    keyword_rel = relationship("Keyword", back_populates="alerts")

    __table_args__ = (
        Index("idx_keyword_alerts_unique", "keyword_id", "alert_type", unique=True),
    )

    def __repr__(self) -> str:
        return f"<KeywordAlert(keyword_id={self.keyword_id}, type='{self.alert_type}')>"


class PageAudit(Base):
    """Raw PageSpeed Insights responses, one row per fetch."""

    __tablename__ = "page_audits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False)
    strategy = Column(String(20), nullable=False)  # mobile, desktop
    source = Column(String(20), default="PSI", nullable=False)
    raw_json = Column(JSON, nullable=True)
    collected_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_page_audits_lookup", "url", "strategy", "source", "collected_at"),
    )

    def __repr__(self) -> str:
        return f"<PageAudit(id={self.id}, url='{self.url}', strategy='{self.strategy}')>"


class CWVMeasurement(Base):
    """Core Web Vitals field data from CrUX."""

    __tablename__ = "cwv_measurements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False)
    origin = Column(Text, nullable=True)
    form_factor = Column(String(20), nullable=False)  # PHONE, DESKTOP
    p75_lcp_ms = Column(Float, nullable=True)
    p75_inp_ms = Column(Float, nullable=True)
    p75_cls = Column(Float, nullable=True)
    p75_fcp_ms = Column(Float, nullable=True)
    p75_ttfb_ms = Column(Float, nullable=True)
    grade = Column(String(1), nullable=True)
    window_start = Column(String(10), nullable=True)  # YYYY-MM-DD
    window_end = Column(String(10), nullable=True)
    collected_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_cwv_lookup", "url", "form_factor", "collected_at"),
    )

    def __repr__(self) -> str:
        return f"<CWVMeasurement(id={self.id}, url='{self.url}', grade='{self.grade}')>"


class ReportCache(Base):
    """Cached Search Console / Analytics payloads per report."""

    __tablename__ = "report_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("client_reports.id", ondelete="CASCADE"), nullable=False)
    data_type = Column(String(50), nullable=False)  # searchConsole, analytics
    data = Column(JSON, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_report_cache_lookup", "report_id", "data_type"),
    )


class AIVisibilityProfile(Base):
    """Aggregate AI visibility scores for a client report."""

    __tablename__ = "ai_visibility_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_report_id = Column(
        Integer, ForeignKey("client_reports.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    overall_score = Column(Integer, default=0, nullable=False)
    sentiment_score = Column(Integer, default=50, nullable=False)
    share_of_voice = Column(Integer, default=0, nullable=False)
    citation_count = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    citations = relationship("AICitation", back_populates="profile", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<AIVisibilityProfile(report={self.client_report_id}, overall={self.overall_score})>"


class AICitation(Base):
    """One AI answer checked for a brand mention or domain citation."""

    __tablename__ = "ai_citations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(Integer, ForeignKey("ai_visibility_profiles.id", ondelete="CASCADE"), nullable=False)
    platform = Column(String(50), nullable=False)  # perplexity
    query = Column(Text, nullable=False)
    response_text = Column(Text, nullable=True)
    citation_position = Column(Integer, nullable=True)
    citation_context = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    sentiment = Column(String(20), nullable=True)  # positive, neutral, negative
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    profile = relationship("AIVisibilityProfile", back_populates="citations")

    __table_args__ = (
        Index("idx_ai_citations_profile", "profile_id", "created_at"),
    )


class LogEntry(Base):
    """Persistent application log."""

    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(String(20), nullable=False)
    source = Column(String(200), nullable=True)
    message = Column(Text, nullable=False)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<LogEntry(id={self.id}, level='{self.level}', source='{self.source}')>"

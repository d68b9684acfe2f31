"""Database layer for reports, keyword tracking and measurement caches."""

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
from search_insights.db.repository import Repository

__all__ = [
    "Base",
    "GoogleAccount",
    "ClientReport",
    "Keyword",
    "KeywordPerformance",
    "KeywordAlert",
    "PageAudit",
    "CWVMeasurement",
    "ReportCache",
    "AIVisibilityProfile",
    "AICitation",
    "LogEntry",
    "Repository",
]

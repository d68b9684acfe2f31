"""Logging configuration."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal

from search_insights.config import get_settings

if TYPE_CHECKING:
    from search_insights.db.repository import Repository


def setup_logging(
    level: str | None = None,
    format_type: Literal["json", "text"] | None = None,
    repository: "Repository | None" = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format (json or text)
        repository: When given and ``debug_db_logs`` is enabled, records are
            also written to the ``logs`` table
    """
    settings = get_settings()
    level = level or settings.log_level
    format_type = format_type or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    if repository is not None and settings.debug_db_logs:
        db_handler = DatabaseLogHandler(repository)
        db_handler.setLevel(logging.INFO)
        root_logger.addHandler(db_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class DatabaseLogHandler(logging.Handler):
    """Mirror log records into the ``logs`` table."""

    # Records from these loggers would recurse through the session machinery
    _IGNORED_PREFIXES = ("sqlalchemy", "search_insights.db")

    def __init__(self, repository: "Repository"):
        super().__init__()
        self.repository = repository

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(self._IGNORED_PREFIXES):
            return
        try:
            meta = None
            if record.exc_info:
                meta = {"exception": logging.Formatter().formatException(record.exc_info)}
            self.repository.write_log(
                level=record.levelname.lower(),
                source=record.name,
                message=record.getMessage(),
                meta=meta,
            )
        except Exception:
            self.handleError(record)

"""Google data validation helpers."""

from search_insights.google.data_validator import DataValidationResult, validate_search_console_data

__all__ = ["DataValidationResult", "validate_search_console_data"]

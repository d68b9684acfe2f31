"""Errors raised by services and mapped to HTTP responses by the API."""


class ServiceError(Exception):
    """A request could not be served as asked (HTTP 400)."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotConfiguredError(ServiceError):
    """An integration needed for the request has no credentials (HTTP 503)."""

    status_code = 503


class ResourceNotFoundError(ServiceError):
    """A referenced report, keyword or account does not exist (HTTP 404)."""

    status_code = 404

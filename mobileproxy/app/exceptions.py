"""Custom exceptions for the proxy application."""

from typing import Any


class ProxyException(Exception):
    """Base class for proxy exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    status_code and error_code so the exception handler in ``main`` can
    turn any of them into a JSON response.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Proxy error", detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error_code}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(ProxyException):
    """Raised when a required input field is missing or empty.

    The message doubles as the error code (e.g. ``"message required"``).
    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.error_code = message


class RateLimitError(ProxyException):
    """Raised when a caller exceeds its per-window request quota.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_code = "rate_limited"

    def __init__(self, limit: int, retry_after: int | None = None):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(f"Rate limit of {limit} requests per window exceeded")


class ConfigurationError(ProxyException):
    """Raised when server-side credentials for an upstream are missing.

    Not recoverable within the request. Maps to HTTP 500.
    """
    status_code = 500
    error_code = "server_not_configured"

    def __init__(self, detail: str):
        super().__init__(detail, detail=detail)


class UpstreamError(ProxyException):
    """Raised when a third-party call fails or times out.

    Carries the upstream name and diagnostic detail. Never retried.
    Maps to HTTP 500.
    """
    status_code = 500
    error_code = "upstream_error"

    def __init__(self, upstream: str, detail: str, status: int | None = None):
        self.upstream = upstream
        self.status = status
        super().__init__(f"{upstream} call failed: {detail}", detail=detail)

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body["upstream"] = self.upstream
        return body

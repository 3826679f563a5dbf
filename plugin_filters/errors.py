"""Typed errors raised by the core.

Hierarchy:
    PluginFiltersError
    ├── DirectoryError
    │   ├── NetworkError (transient, retryable)
    │   │   └── RateLimitError
    │   ├── ProtocolError (response shape invalid)
    │   └── NotFoundError (slug unknown upstream)
    └── ValidationError (caller-supplied input or configuration rejected)

Scorers never raise for missing data; an uncomputable component is None
in the ScoreBreakdown instead.
"""

from typing import Any

from plugin_filters.models.model_query import ErrorInfo


class PluginFiltersError(Exception):
    """Base class for every error the core raises."""

    code: str = "plugin_filters_error"
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code, message=self.message, retryable=self.retryable)


class DirectoryError(PluginFiltersError):
    code = "directory_error"


class NetworkError(DirectoryError):
    """Upstream temporarily unavailable: connection failure, timeout, 5xx."""

    code = "network_error"
    retryable = True


class RateLimitError(NetworkError):
    """Upstream kept answering 429 after all retries."""

    code = "rate_limit_exceeded"


class ProtocolError(DirectoryError):
    """Upstream answered, but not in the expected shape."""

    code = "protocol_error"


class NotFoundError(DirectoryError):
    """Requested slug does not exist upstream."""

    code = "not_found"


class ValidationError(PluginFiltersError):
    """Rejected input; any prior state is left untouched."""

    code = "validation_error"

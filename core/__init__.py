"""Shared infrastructure exports."""

from .context import ResearchContext, ResearchContextManager, current_research_context
from .errors import (
    ConfigurationError,
    ExternalServiceError,
    NotFoundError,
    PreconditionError,
    RateLimitError,
    ResearchError,
    RetryableError,
    ValidationError,
    coerce_research_error,
)
from .retry import RetryPolicy, backoff_delay, retry_async
from .telemetry import (
    LoggingTelemetryClient,
    RecordingTelemetryClient,
    TelemetryClient,
    TelemetryEvent,
    TelemetryMixin,
)

__all__ = [
    "ResearchContext",
    "ResearchContextManager",
    "current_research_context",
    "ConfigurationError",
    "ExternalServiceError",
    "NotFoundError",
    "PreconditionError",
    "RateLimitError",
    "ResearchError",
    "RetryableError",
    "ValidationError",
    "coerce_research_error",
    "RetryPolicy",
    "backoff_delay",
    "retry_async",
    "LoggingTelemetryClient",
    "RecordingTelemetryClient",
    "TelemetryClient",
    "TelemetryEvent",
    "TelemetryMixin",
]

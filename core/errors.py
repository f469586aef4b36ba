"""Shared error taxonomy for the research pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class ResearchError(Exception):
    """Base class for structured pipeline exceptions."""

    message: str
    code: str = "research_error"
    retryable: bool = False
    http_status: int = 500
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "http_status": self.http_status,
            "details": self.details,
        }


class ConfigurationError(ResearchError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="configuration_error",
            retryable=False,
            http_status=500,
            details=details,
        )


class ValidationError(ResearchError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="validation_error",
            retryable=False,
            http_status=422,
            details=details,
        )


class PreconditionError(ResearchError):
    """Raised when a stage runs before the data it depends on exists."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="incomplete_prerequisites",
            retryable=False,
            http_status=412,
            details=details,
        )


class NotFoundError(ResearchError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="not_found",
            retryable=False,
            http_status=404,
            details=details,
        )


class RateLimitError(ResearchError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="rate_limited",
            retryable=True,
            http_status=429,
            details=details,
        )


class ExternalServiceError(ResearchError):
    def __init__(self, message: str, *, retryable: bool = True, **details: Any) -> None:
        super().__init__(
            message=message,
            code="external_service_error",
            retryable=retryable,
            http_status=503 if retryable else 502,
            details=details,
        )


class RetryableError(ResearchError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(
            message=message,
            code="retryable_error",
            retryable=True,
            http_status=503,
            details=details,
        )


def coerce_research_error(error: Exception) -> ResearchError:
    """Return *error* as a :class:`ResearchError`."""

    if isinstance(error, ResearchError):
        return error
    return ResearchError(message=str(error))

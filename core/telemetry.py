"""Stage events for the research pipeline.

Components mix in :class:`TelemetryMixin` and call ``emit_event`` when a
stage reaches a milestone (session opened, facet persisted) and
``capture_exception`` when a stage fails. Events carry the
:class:`ResearchContext` bound to the running task so every line can be tied
back to its request and session.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import structlog

from .context import ResearchContext, current_research_context
from .errors import coerce_research_error


@dataclass
class TelemetryEvent:
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    context: Optional[ResearchContext] = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def fields(self) -> Dict[str, Any]:
        """Event attributes merged with the identifying fields of its context."""
        payload = dict(self.attributes)
        payload.setdefault("timestamp", self.timestamp.isoformat())
        if self.context is not None:
            for key, value in self.context.log_fields().items():
                payload.setdefault(key, value)
        return payload


class TelemetryClient(ABC):
    @abstractmethod
    def emit_event(self, event: TelemetryEvent) -> None:
        """Send a stage event."""

    def capture_exception(self, error: BaseException, *, attributes: Optional[Mapping[str, Any]] = None) -> None:
        """Record a stage failure."""


class LoggingTelemetryClient(TelemetryClient):
    """Writes events through :mod:`structlog`."""

    def __init__(self, logger: Optional[structlog.BoundLogger] = None) -> None:
        self._logger = logger or structlog.get_logger("telemetry")

    def emit_event(self, event: TelemetryEvent) -> None:
        self._logger.info(event.name, **event.fields())

    def capture_exception(self, error: BaseException, *, attributes: Optional[Mapping[str, Any]] = None) -> None:
        research_error = coerce_research_error(error) if isinstance(error, Exception) else None
        payload: Dict[str, Any] = dict(attributes or {})
        payload["error"] = repr(error)
        if research_error is not None:
            payload.setdefault("code", research_error.code)
            payload.setdefault("retryable", research_error.retryable)
        context = current_research_context()
        if context is not None:
            for key, value in context.log_fields().items():
                payload.setdefault(key, value)
        self._logger.error("stage.failed", **payload)


class RecordingTelemetryClient(TelemetryClient):
    """Keeps events and failures in memory."""

    def __init__(self) -> None:
        self.events: List[TelemetryEvent] = []
        self.failures: List[Dict[str, Any]] = []

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def emit_event(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def capture_exception(self, error: BaseException, *, attributes: Optional[Mapping[str, Any]] = None) -> None:
        self.failures.append({"error": error, **dict(attributes or {})})


class TelemetryMixin:
    def __init__(self, telemetry_client: Optional[TelemetryClient] = None) -> None:
        self._telemetry_client = telemetry_client or LoggingTelemetryClient()

    @property
    def telemetry(self) -> TelemetryClient:
        return self._telemetry_client

    def emit_event(self, name: str, **attributes: Any) -> None:
        context = attributes.pop("context", None) or current_research_context()
        self.telemetry.emit_event(TelemetryEvent(name=name, attributes=attributes, context=context))

    def capture_exception(self, error: BaseException, **attributes: Any) -> None:
        self.telemetry.capture_exception(error, attributes=attributes or None)

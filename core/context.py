"""Research request context shared by pipeline stages, logs and telemetry.

A request (one API call or one CLI ``research`` run) gets a
:class:`ResearchContext`. Every stage it enters derives a child that records
the stage it was entered from, so a nested ``trends`` stage run by
``research`` reports ``stage_path == "research/trends"``. While bound, the
identifying fields are also bound to structlog's contextvars so every log
line emitted inside the stage carries them.
"""
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import structlog


_CURRENT_CONTEXT: ContextVar[Optional["ResearchContext"]] = ContextVar(
    "research_current_context",
    default=None,
)

LOG_FIELDS = ("request_id", "session_id", "stage", "parent_stage", "client_ip")


@dataclass
class ResearchContext:
    """Identity of one research request and the stage it is currently in."""

    request_id: str
    session_id: Optional[str] = None
    stage: Optional[str] = None
    parent_stage: Optional[str] = None
    client_ip: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def new(cls, **fields: Any) -> "ResearchContext":
        fields.setdefault("request_id", str(uuid.uuid4()))
        return cls(**fields)

    @property
    def stage_path(self) -> Optional[str]:
        if self.parent_stage and self.stage:
            return f"{self.parent_stage}/{self.stage}"
        return self.stage

    def enter_stage(self, stage: str, session_id: Optional[str] = None, **metadata: Any) -> "ResearchContext":
        """Derive the context of ``stage`` entered from this one."""
        merged = dict(self.metadata)
        merged.update(metadata)
        return replace(
            self,
            stage=stage,
            parent_stage=self.stage_path,
            session_id=session_id or self.session_id,
            metadata=merged,
        )

    def log_fields(self) -> Dict[str, Any]:
        """Non-empty identifying fields, as bound to log lines and telemetry events."""
        values = {key: getattr(self, key) for key in LOG_FIELDS}
        return {key: value for key, value in values.items() if value}


class ResearchContextManager:
    """Bind a :class:`ResearchContext` (and its log fields) to the current task."""

    def __init__(self, context: ResearchContext):
        self._context = context
        self._token = None
        self._log_tokens: Mapping[str, Any] = {}

    def __enter__(self) -> ResearchContext:
        self._token = _CURRENT_CONTEXT.set(self._context)
        self._log_tokens = structlog.contextvars.bind_contextvars(**self._context.log_fields())
        return self._context

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._token is not None:
            structlog.contextvars.reset_contextvars(**self._log_tokens)
            _CURRENT_CONTEXT.reset(self._token)
            self._token = None
            self._log_tokens = {}

    async def __aenter__(self) -> ResearchContext:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.__exit__(exc_type, exc, tb)


def current_research_context() -> Optional[ResearchContext]:
    """Return the context bound to the current execution task, if any."""

    return _CURRENT_CONTEXT.get()


def stage_context(stage: str, session_id: Optional[str] = None, **metadata: Any) -> ResearchContextManager:
    """Context manager for entering ``stage``.

    Inside a bound request the stage is derived from it and keeps its request
    id, client ip and session. Outside one (a stage called directly) a fresh
    request id is minted.
    """
    parent = current_research_context()
    if parent is None:
        context = ResearchContext.new(stage=stage, session_id=session_id, metadata=metadata)
    else:
        context = parent.enter_stage(stage, session_id, **metadata)
    return ResearchContextManager(context)

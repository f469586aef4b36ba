from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import structlog
from prometheus_client import Counter, Gauge, Histogram

logger = structlog.get_logger("import_scout")

PROVIDER_REQUESTS = Counter("import_scout_provider_requests", "Outbound provider calls", ["provider"])
PROVIDER_FAILURES = Counter("import_scout_provider_failures", "Provider calls that degraded to empty", ["provider"])
PROVIDER_LATENCY = Histogram("import_scout_provider_latency_seconds", "Provider call latency", ["provider"])
LLM_REQUESTS = Counter("import_scout_llm_requests", "Structured extraction calls", ["outcome"])
DEGRADED_REPORTS = Counter("import_scout_degraded_reports", "Facet reports that fell back to the degraded shape", ["facet"])
STAGE_INFLIGHT = Gauge("import_scout_stage_inflight", "Pipeline stages currently running", ["stage"])
STAGE_LATENCY = Histogram("import_scout_stage_latency_seconds", "Pipeline stage latency", ["stage"])

_configured = False


def configure_logging(level: Optional[str] = None, *, json_output: bool = False) -> None:
    """Configure structlog once per process; level defaults to ``IMPORT_SCOUT_LOG_LEVEL``."""
    global _configured
    if _configured:
        return
    level_name = (level or os.getenv("IMPORT_SCOUT_LOG_LEVEL", "INFO")).upper()
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
    )
    _configured = True


def emit_log(event: str, *, extra: Optional[Dict[str, Any]] = None, level: int = logging.INFO) -> None:
    logger.log(level, event, **(extra or {}))


@contextmanager
def provider_call(provider: str) -> Iterator[None]:
    PROVIDER_REQUESTS.labels(provider=provider).inc()
    started = time.perf_counter()
    try:
        yield
    finally:
        PROVIDER_LATENCY.labels(provider=provider).observe(time.perf_counter() - started)


def record_provider_failure(provider: str, error: BaseException, **extra: Any) -> None:
    PROVIDER_FAILURES.labels(provider=provider).inc()
    emit_log(
        "provider.degraded",
        extra={"provider": provider, "error": repr(error), **extra},
        level=logging.WARNING,
    )


def record_degraded(facet: str, error: BaseException) -> None:
    DEGRADED_REPORTS.labels(facet=facet).inc()
    emit_log("synthesis.degraded", extra={"facet": facet, "error": repr(error)}, level=logging.WARNING)


@contextmanager
def stage_span(stage: str, **attributes: Any) -> Iterator[None]:
    """Track one pipeline stage: inflight gauge, latency histogram and start/finish logs."""
    STAGE_INFLIGHT.labels(stage=stage).inc()
    started = time.perf_counter()
    emit_log("stage.started", extra={"stage": stage, **attributes})
    try:
        yield
    except Exception as exc:
        emit_log("stage.failed", extra={"stage": stage, "error": repr(exc), **attributes}, level=logging.ERROR)
        raise
    finally:
        elapsed = time.perf_counter() - started
        STAGE_INFLIGHT.labels(stage=stage).dec()
        STAGE_LATENCY.labels(stage=stage).observe(elapsed)
    emit_log("stage.completed", extra={"stage": stage, "elapsed": round(elapsed, 3), **attributes})


__all__ = [
    "DEGRADED_REPORTS",
    "LLM_REQUESTS",
    "PROVIDER_FAILURES",
    "PROVIDER_LATENCY",
    "PROVIDER_REQUESTS",
    "STAGE_INFLIGHT",
    "STAGE_LATENCY",
    "configure_logging",
    "emit_log",
    "provider_call",
    "record_degraded",
    "record_provider_failure",
    "stage_span",
]

"""Retry utilities with exponential backoff."""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import structlog

from .errors import ResearchError, RetryableError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    jitter: Tuple[float, float] = (0.0, 0.0)
    retry_exceptions: Tuple[Type[Exception], ...] = (RetryableError,)
    non_retryable_exceptions: Tuple[Type[Exception], ...] = (ValidationError,)


def backoff_delay(retry_index: int, base: float, factor: float = 2.0) -> float:
    """Delay before retry number ``retry_index`` (0-based): ``base * factor**n``."""

    return base * (factor ** retry_index)


def _should_retry(error: Exception, policy: RetryPolicy) -> bool:
    if isinstance(error, policy.non_retryable_exceptions):
        return False
    if isinstance(error, ResearchError) and error.retryable:
        return True
    return isinstance(error, policy.retry_exceptions)


def _compute_delay(attempt: int, policy: RetryPolicy) -> float:
    delay = backoff_delay(attempt - 1, policy.base_delay, policy.backoff_factor)
    delay = min(delay, policy.max_delay)
    if policy.jitter != (0.0, 0.0):
        lo, hi = policy.jitter
        delay += random.uniform(lo, hi)
    return delay


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Await ``func`` until it succeeds, the error is terminal, or attempts run out.

    The last error is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    last_error: Optional[Exception] = None

    for attempt in range(1, policy.attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            if attempt == policy.attempts or not _should_retry(exc, policy):
                raise
            delay = _compute_delay(attempt, policy)
            logger.warning(
                "retry.scheduled",
                attempt=attempt,
                delay=delay,
                error=repr(exc),
                func=getattr(func, "__name__", repr(func)),
            )
            await sleep(delay)

    if last_error:
        raise last_error
    raise RuntimeError("retry_async exited without executing the function")


from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from core.errors import ExternalServiceError


class CircuitBreakerOpen(ExternalServiceError):
    """Raised when a circuit breaker refuses a call."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Circuit breaker for {name} is open", retryable=False, provider=name)


class CircuitBreaker:
    """Stops calling a provider after repeated failures until a cool-down passes."""

    def __init__(
        self,
        name: str = "default",
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._failure_count = 0
        self._state = "closed"
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        return self._state

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = "closed"
        self._opened_at = None

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == "half_open" or self._failure_count >= self._failure_threshold:
            self._state = "open"
            self._opened_at = self._clock()

    def allow(self) -> bool:
        if self._state != "open":
            return True
        if self._opened_at is None or self._clock() - self._opened_at >= self._recovery_timeout:
            self._state = "half_open"
            return True
        return False

    async def run(self, coro_factory: Callable[[], Awaitable[Any]]) -> Any:
        if not self.allow():
            raise CircuitBreakerOpen(self.name)
        try:
            result = await coro_factory()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


class BulkheadExecutor:
    """Caps how many calls to one provider are in flight at once."""

    def __init__(self, *, max_concurrency: int) -> None:
        self._sem = asyncio.Semaphore(max_concurrency)

    async def run(self, coro_factory: Callable[[], Awaitable[Any]]) -> Any:
        async with self._sem:
            return await coro_factory()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._sem:
            yield


class ProviderGuard:
    """One breaker plus one bulkhead per provider name, created on first use."""

    def __init__(self, *, failure_threshold: int = 5, recovery_timeout: float = 30.0, max_concurrency: int = 8) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._max_concurrency = max_concurrency
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._bulkheads: Dict[str, BulkheadExecutor] = {}

    def breaker(self, name: str) -> CircuitBreaker:
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name,
                failure_threshold=self._failure_threshold,
                recovery_timeout=self._recovery_timeout,
            )
        return self._breakers[name]

    def bulkhead(self, name: str) -> BulkheadExecutor:
        if name not in self._bulkheads:
            self._bulkheads[name] = BulkheadExecutor(max_concurrency=self._max_concurrency)
        return self._bulkheads[name]

    async def run(self, name: str, coro_factory: Callable[[], Awaitable[Any]]) -> Any:
        bulkhead = self.bulkhead(name)
        return await self.breaker(name).run(lambda: bulkhead.run(coro_factory))


__all__ = ["BulkheadExecutor", "CircuitBreaker", "CircuitBreakerOpen", "ProviderGuard"]

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from core.errors import ExternalServiceError
from core.retry import RetryPolicy, retry_async

from ..cache import TTLCache
from ..config import Settings
from ..reference import currency_for_country
from ..telemetry import record_provider_failure
from .http import JsonHttpClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExchangeRate:
    currency_code: str
    rate: float


class ExchangeRateClient:
    """USD to local-currency rates, cached per currency in a shared ``TTLCache``."""

    def __init__(
        self,
        settings: Settings,
        *,
        cache: Optional[TTLCache] = None,
        http: Optional[JsonHttpClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._url = settings.exchange_rate_api_url
        self._ttl = settings.exchange_rate_ttl_seconds
        self._cache = cache if cache is not None else TTLCache(ttl=self._ttl)
        self._http = http or JsonHttpClient("exchange_rate", timeout=settings.timeout_for("exchange_rate"))
        self._policy = retry_policy or RetryPolicy(attempts=3, base_delay=1.0)
        self._sleep = sleep

    async def fetch_rate(self, country_code: str) -> ExchangeRate:
        """Return the rate for the country's currency; raises once retries are exhausted."""
        currency = currency_for_country(country_code)
        if currency == "USD":
            return ExchangeRate("USD", 1.0)

        cached = self._cache.get(("fx", currency))
        if cached is not None:
            return cached

        payload = await retry_async(self._http.get_json, self._url, policy=self._policy, sleep=self._sleep)
        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict):
            raise ExternalServiceError("Exchange rate payload has no rates table", retryable=False)
        rate = rates.get(currency)
        if rate is None:
            logger.warning("exchange_rate.missing_currency", currency=currency)
            return ExchangeRate(currency, 1.0)

        result = ExchangeRate(currency, float(rate))
        self._cache.put(("fx", currency), result, ttl=self._ttl)
        return result

    async def get_rate(self, country_code: str) -> ExchangeRate:
        """Like :meth:`fetch_rate` but falls back to rate 1 on failure."""
        try:
            return await self.fetch_rate(country_code)
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("exchange_rate", exc, country_code=country_code)
            return ExchangeRate(currency_for_country(country_code), 1.0)


__all__ = ["ExchangeRate", "ExchangeRateClient"]

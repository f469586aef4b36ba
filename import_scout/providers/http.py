from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from core.errors import ExternalServiceError

from ..resilience import ProviderGuard
from ..telemetry import provider_call


class JsonHttpClient:
    """HTTPX JSON client for one provider, guarded by a breaker and a bulkhead.

    A fresh ``AsyncClient`` is opened per call with the provider's fixed
    timeout. Transport and HTTP failures surface as ``ExternalServiceError``.
    """

    def __init__(
        self,
        name: str,
        *,
        timeout: float,
        guard: Optional[ProviderGuard] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self._timeout = timeout
        self._guard = guard or ProviderGuard()
        self._transport = transport

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self._request("GET", url, params=params, headers=headers)

    async def post_json(
        self,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self._request("POST", url, json=json, data=data, headers=headers)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        kwargs = {key: value for key, value in kwargs.items() if value is not None}

        async def _call() -> Any:
            with provider_call(self.name):
                try:
                    async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                        response = await client.request(method, url, **kwargs)
                    response.raise_for_status()
                    return response.json()
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    raise ExternalServiceError(
                        f"{self.name} returned {status}: {exc.response.text[:300]}",
                        retryable=status == 429 or status >= 500,
                        provider=self.name,
                        status_code=status,
                    ) from exc
                except httpx.HTTPError as exc:
                    raise ExternalServiceError(f"{self.name} request failed: {exc!r}", provider=self.name) from exc
                except ValueError as exc:
                    raise ExternalServiceError(
                        f"{self.name} returned a non-JSON body", retryable=False, provider=self.name
                    ) from exc

        return await self._guard.run(self.name, _call)


__all__ = ["JsonHttpClient"]

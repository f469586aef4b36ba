from __future__ import annotations

import ipaddress
from typing import Optional

from ..config import Settings
from ..models import Geolocation
from ..telemetry import record_provider_failure
from .http import JsonHttpClient


def is_local_address(ip: str) -> bool:
    """True for private, loopback, unspecified, link-local or unparseable addresses."""
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return True
    return address.is_private or address.is_loopback or address.is_unspecified or address.is_link_local


class GeolocationClient:
    def __init__(self, settings: Settings, *, http: Optional[JsonHttpClient] = None) -> None:
        self._base_url = settings.geolocation_api_url.rstrip("/")
        self._http = http or JsonHttpClient("geolocation", timeout=settings.timeout_for("geolocation"))

    async def locate(self, ip: Optional[str]) -> Optional[Geolocation]:
        """Resolve ``ip`` to a country; ``None`` when unknown or on failure."""
        if not ip or is_local_address(ip):
            return None
        try:
            data = await self._http.get_json(f"{self._base_url}/{ip.strip()}")
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("geolocation", exc)
            return None
        if not isinstance(data, dict) or data.get("status") != "success" or not data.get("countryCode"):
            return None
        return Geolocation(
            country_code=data["countryCode"],
            country_name=data.get("country") or data["countryCode"],
            city=data.get("city") or None,
            timezone=data.get("timezone") or None,
        )


__all__ = ["GeolocationClient", "is_local_address"]

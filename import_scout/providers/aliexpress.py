from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..models import Platform, PlatformProduct
from ..telemetry import record_provider_failure
from .http import JsonHttpClient
from .prices import to_float

ALIEXPRESS_URL = "https://api-sg.aliexpress.com/sync"
SMARTMATCH_METHOD = "aliexpress.affiliate.product.smartmatch"
PAGE_SIZE = 10


def sign_request(params: Mapping[str, str], secret: str) -> str:
    """MD5 signature: secret + sorted key/value pairs + secret, upper-case hex."""
    base = secret + "".join(f"{key}{params[key]}" for key in sorted(params)) + secret
    return hashlib.md5(base.encode("utf-8")).hexdigest().upper()


def _first_price(item: Dict[str, Any]) -> Optional[float]:
    for key in ("target_app_sale_price", "target_original_price"):
        value = to_float(item.get(key))
        if value:
            return value
    return None


def _map_product(item: Dict[str, Any]) -> PlatformProduct:
    price = _first_price(item)
    volume = item.get("lastest_volume")
    product_id = item.get("product_id")
    return PlatformProduct(
        platform=Platform.ALIEXPRESS,
        external_id=str(product_id) if product_id is not None else None,
        title=item.get("product_title") or "Untitled",
        price_raw=price,
        price_formatted=f"${price:.2f}" if price is not None else "N/A",
        rating=to_float(str(item.get("evaluate_rate", "")).rstrip("%")) if item.get("evaluate_rate") else None,
        seller_name=item.get("shop_name"),
        product_url=item.get("product_detail_url") or item.get("promotion_link"),
        image_url=item.get("product_main_image_url"),
        sales_volume=str(volume) if volume is not None else None,
        source_domain="aliexpress.com",
    )


class AliExpressClient:
    """Affiliate product search; returns ``[]`` when credentials are absent or on any failure."""

    def __init__(
        self,
        settings: Settings,
        *,
        http: Optional[JsonHttpClient] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._app_key = settings.aliexpress_app_key
        self._app_secret = settings.aliexpress_app_secret
        self._http = http or JsonHttpClient("aliexpress", timeout=settings.timeout_for("aliexpress"))
        self._clock = clock

    @property
    def configured(self) -> bool:
        return bool(self._app_key and self._app_secret)

    def build_params(self, query: str) -> Dict[str, str]:
        params = {
            "app_key": self._app_key or "",
            "method": SMARTMATCH_METHOD,
            "sign_method": "md5",
            "timestamp": self._clock().strftime("%Y-%m-%d %H:%M:%S"),
            "v": "2.0",
            "format": "json",
            "keywords": query,
            "target_currency": "USD",
            "target_language": "EN",
            "page_no": "1",
            "page_size": str(PAGE_SIZE),
        }
        params["sign"] = sign_request(params, self._app_secret or "")
        return params

    async def search(self, query: str) -> List[PlatformProduct]:
        if not self.configured:
            return []
        try:
            data = await self._http.get_json(ALIEXPRESS_URL, params=self.build_params(query))
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("aliexpress", exc)
            return []
        try:
            result = data["aliexpress_affiliate_product_smartmatch_response"]["resp_result"]["result"]
            items = result["products"]["product"]
        except (KeyError, TypeError):
            return []
        if not isinstance(items, list):
            return []
        products: List[PlatformProduct] = []
        for item in items[:PAGE_SIZE]:
            if not isinstance(item, dict):
                continue
            try:
                products.append(_map_product(item))
            except (PydanticValidationError, TypeError, ValueError) as exc:
                record_provider_failure("aliexpress", exc, product_id=item.get("product_id"))
        return products


__all__ = ["AliExpressClient", "sign_request"]

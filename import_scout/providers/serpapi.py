from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..config import Settings
from ..models import Platform, PlatformProduct, TrendsRawData
from ..telemetry import record_provider_failure
from .http import JsonHttpClient
from .prices import parse_price, to_count, to_float

logger = structlog.get_logger(__name__)

RETAIL_ENGINES = (Platform.AMAZON, Platform.EBAY, Platform.WALMART, Platform.GOOGLE_SHOPPING)
TREND_DATA_TYPES = ("TIMESERIES", "GEO_MAP_0", "RELATED_QUERIES", "RELATED_TOPICS")
WHOLESALE_QUERY_TEMPLATES = (
    "{query} wholesale supplier bulk",
    "{query} import wholesale china factory",
)


def _position(item: Dict[str, Any]) -> Optional[str]:
    position = item.get("position")
    return str(position) if position is not None else None


def _rating(item: Dict[str, Any]) -> Optional[float]:
    return to_float(item.get("rating")) if item.get("rating") else None


def _map_amazon(item: Dict[str, Any]) -> PlatformProduct:
    price_obj = item.get("price") if isinstance(item.get("price"), dict) else {}
    raw = price_obj.get("raw", price_obj.get("value", item.get("price_raw")))
    value, formatted = parse_price(raw)
    seller = item.get("seller") if isinstance(item.get("seller"), dict) else {}
    return PlatformProduct(
        platform=Platform.AMAZON,
        external_id=item.get("asin") or _position(item),
        title=item.get("title") or "Untitled",
        price_raw=value if value is not None else to_float(price_obj.get("value")),
        price_formatted=formatted,
        currency=price_obj.get("currency") or "USD",
        rating=_rating(item),
        review_count=to_count(item.get("reviews")),
        seller_name=seller.get("name"),
        is_verified=item.get("is_prime"),
        product_url=item.get("link"),
        image_url=item.get("thumbnail"),
    )


def _map_ebay(item: Dict[str, Any]) -> PlatformProduct:
    price_obj = item.get("price") if isinstance(item.get("price"), dict) else {}
    raw = price_obj.get("raw", price_obj.get("extracted"))
    if raw is None and not isinstance(item.get("price"), dict):
        raw = item.get("price")
    value, formatted = parse_price(raw)
    seller = item.get("seller_info") if isinstance(item.get("seller_info"), dict) else {}
    return PlatformProduct(
        platform=Platform.EBAY,
        external_id=item.get("epid") or _position(item),
        title=item.get("title") or "Untitled",
        price_raw=value if value is not None else to_float(price_obj.get("extracted")),
        price_formatted=formatted,
        currency=price_obj.get("currency") or "USD",
        seller_name=seller.get("name"),
        product_url=item.get("link"),
        image_url=item.get("thumbnail"),
        condition=item.get("condition"),
    )


def _map_walmart(item: Dict[str, Any]) -> PlatformProduct:
    offer = item.get("primary_offer") if isinstance(item.get("primary_offer"), dict) else {}
    raw = offer.get("offer_price", item.get("price"))
    value, formatted = parse_price(raw)
    return PlatformProduct(
        platform=Platform.WALMART,
        external_id=item.get("us_item_id") or item.get("product_id") or _position(item),
        title=item.get("title") or "Untitled",
        price_raw=value,
        price_formatted=formatted,
        rating=_rating(item),
        review_count=to_count(item.get("reviews")),
        seller_name=item.get("seller_name"),
        product_url=item.get("product_page_url") or item.get("link"),
        image_url=item.get("thumbnail"),
    )


def _shopping_mapper(platform: Platform) -> Callable[[Dict[str, Any]], PlatformProduct]:
    def _map(item: Dict[str, Any]) -> PlatformProduct:
        raw = item.get("extracted_price", item.get("price"))
        value, formatted = parse_price(raw)
        return PlatformProduct(
            platform=platform,
            external_id=item.get("product_id") or _position(item),
            title=item.get("title") or "Untitled",
            price_raw=value if value is not None else to_float(item.get("extracted_price")),
            price_formatted=formatted,
            rating=_rating(item),
            review_count=to_count(item.get("reviews")),
            seller_name=item.get("source"),
            product_url=item.get("link"),
            image_url=item.get("thumbnail"),
            source_domain=item.get("source") if platform != Platform.GOOGLE_SHOPPING else None,
        )

    return _map


_ENGINE_PARAMS: Dict[Platform, Callable[[str], Dict[str, Any]]] = {
    Platform.AMAZON: lambda q: {"engine": "amazon", "k": q, "amazon_domain": "amazon.com"},
    Platform.EBAY: lambda q: {"engine": "ebay", "_nkw": q, "ebay_domain": "ebay.com"},
    Platform.WALMART: lambda q: {"engine": "walmart", "query": q},
    Platform.GOOGLE_SHOPPING: lambda q: {"engine": "google_shopping", "q": q, "gl": "us", "hl": "en"},
}

_ENGINE_MAPPERS: Dict[Platform, Callable[[Dict[str, Any]], PlatformProduct]] = {
    Platform.AMAZON: _map_amazon,
    Platform.EBAY: _map_ebay,
    Platform.WALMART: _map_walmart,
    Platform.GOOGLE_SHOPPING: _shopping_mapper(Platform.GOOGLE_SHOPPING),
}


class SerpApiClient:
    """Shopping and trends search through SerpApi.

    Listing searches never raise: any failure is logged and yields ``[]``.
    """

    def __init__(self, settings: Settings, *, http: Optional[JsonHttpClient] = None) -> None:
        self._api_key = settings.serpapi_api_key
        self._base_url = settings.serpapi_base_url
        self._limit = settings.serpapi_results_per_page
        self._trends_date = settings.serpapi_trends_date
        self._http = http or JsonHttpClient("serpapi", timeout=settings.timeout_for("serpapi"))

    async def call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {"api_key": self._api_key, "output": "json"}
        query.update({key: value for key, value in params.items() if value is not None})
        payload = await self._http.get_json(self._base_url, params=query)
        return payload if isinstance(payload, dict) else {}

    def _map_results(
        self,
        data: Dict[str, Any],
        mapper: Callable[[Dict[str, Any]], PlatformProduct],
        key: str = "organic_results",
    ) -> List[PlatformProduct]:
        items = data.get(key) or data.get("organic_results") or []
        products: List[PlatformProduct] = []
        for item in items[: self._limit]:
            if isinstance(item, dict):
                products.append(mapper(item))
        return products

    async def search_platform(self, platform: Platform, query: str) -> List[PlatformProduct]:
        platform = Platform(platform)
        key = "shopping_results" if platform == Platform.GOOGLE_SHOPPING else "organic_results"
        try:
            data = await self.call(_ENGINE_PARAMS[platform](query))
            return self._map_results(data, _ENGINE_MAPPERS[platform], key)
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("serpapi", exc, platform=platform.value)
            return []

    async def search_all_retail(self, query: str) -> Dict[str, List[PlatformProduct]]:
        batches = await asyncio.gather(*(self.search_platform(p, query) for p in RETAIL_ENGINES))
        return {platform.value: batch for platform, batch in zip(RETAIL_ENGINES, batches)}

    async def _shopping(self, params: Dict[str, Any], platform: Platform) -> List[PlatformProduct]:
        try:
            data = await self.call({"engine": "google_shopping", **params})
            return self._map_results(data, _shopping_mapper(platform), "shopping_results")
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("serpapi", exc, platform=platform.value)
            return []

    async def search_wholesale(self, query: str) -> List[PlatformProduct]:
        batches = await asyncio.gather(
            *(
                self._shopping({"q": template.format(query=query), "gl": "us", "hl": "en"}, Platform.WHOLESALE)
                for template in WHOLESALE_QUERY_TEMPLATES
            )
        )
        seen = set()
        merged: List[PlatformProduct] = []
        for batch in batches:
            for product in batch:
                key = f"{product.title}|{product.price_raw if product.price_raw is not None else ''}"
                if key in seen:
                    continue
                seen.add(key)
                merged.append(product)
        return merged

    async def search_local_shopping(self, query: str, country_code: str, language_code: str) -> List[PlatformProduct]:
        params = {"q": query, "gl": country_code.lower(), "hl": language_code}
        return await self._shopping(params, Platform.LOCAL_RETAIL)

    async def get_trends(self, keyword: str, geo: str, language_code: Optional[str] = None) -> TrendsRawData:
        async def _fetch(data_type: str) -> Dict[str, Any]:
            params: Dict[str, Any] = {
                "engine": "google_trends",
                "q": keyword,
                "data_type": data_type,
                "geo": geo.upper(),
                "date": self._trends_date,
            }
            if language_code and language_code != "en":
                params["hl"] = language_code
            try:
                return await self.call(params)
            except Exception as exc:  # noqa: BLE001
                record_provider_failure("serpapi", exc, data_type=data_type)
                return {}

        timeseries, geo_map, related_queries, related_topics = await asyncio.gather(
            *(_fetch(data_type) for data_type in TREND_DATA_TYPES)
        )
        return TrendsRawData(
            timeseries=timeseries,
            geo_map=geo_map,
            related_queries=related_queries,
            related_topics=related_topics,
        )


__all__ = ["RETAIL_ENGINES", "SerpApiClient", "TREND_DATA_TYPES"]

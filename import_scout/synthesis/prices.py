from __future__ import annotations

import statistics
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..interfaces import StructuredExtractor
from ..models import (
    RETAIL_PLATFORMS,
    WHOLESALE_PLATFORMS,
    Platform,
    PlatformProduct,
    PlatformResults,
    PriceAnalysis,
)
from ..telemetry import record_degraded

NO_RESULTS_SUMMARY = "No product results found on any platform for this query."


class PriceNarrative(BaseModel):
    best_source_platform: Optional[Platform] = None
    arbitrage_signal: Optional[str] = None
    summary: str


def _money(value: Optional[float]) -> Optional[float]:
    return round(value, 2) if value is not None else None


def _mirror(value: Optional[float], rate: float) -> Optional[float]:
    return round(value * rate, 2) if value is not None else None


def _margin(price: Optional[float], cost: Optional[float]) -> Optional[float]:
    if price is None or cost is None or price <= 0:
        return None
    return round((price - cost) / price * 100, 2)


def _priced(products: List[PlatformProduct]) -> List[PlatformProduct]:
    return [p for p in products if p.price_raw is not None and p.price_raw > 0]


def _local_usd(product: PlatformProduct, exchange_rate: float) -> Optional[float]:
    if product.price_raw is not None and product.price_raw > 0:
        return product.price_raw
    if product.price_local is not None and product.price_local > 0 and exchange_rate > 0:
        return product.price_local / exchange_rate
    return None


def compute_price_metrics(platforms: PlatformResults, exchange_rate: float) -> Dict[str, Any]:
    """Floor, ceiling, local median and margin range, in USD with local mirrors."""
    wholesale: List[Tuple[float, str]] = [
        (p.price_raw, Platform(p.platform).value)
        for platform in WHOLESALE_PLATFORMS
        for p in _priced(platforms.for_platform(platform))
    ]
    retail = [p.price_raw for platform in RETAIL_PLATFORMS for p in _priced(platforms.for_platform(platform))]
    local = [
        price
        for price in (_local_usd(p, exchange_rate) for p in platforms.local_retail)
        if price is not None
    ]

    floor_entry = min(wholesale, key=lambda entry: entry[0]) if wholesale else None
    floor = floor_entry[0] if floor_entry else None
    ceiling = max(retail) if retail else None
    median = statistics.median(local) if local else None

    return {
        "wholesale_floor": _money(floor),
        "wholesale_floor_local": _mirror(floor, exchange_rate),
        "retail_ceiling": _money(ceiling),
        "retail_ceiling_local": _mirror(ceiling, exchange_rate),
        "local_retail_median": _money(median),
        "local_retail_median_local": _mirror(median, exchange_rate),
        "gross_margin_pct_min": _margin(median, floor),
        "gross_margin_pct_max": _margin(ceiling, floor),
        "floor_platform": floor_entry[1] if floor_entry else None,
    }


def _render_listings(platforms: PlatformResults, currency_code: str) -> str:
    sections = []
    for platform in Platform:
        products = platforms.for_platform(platform)
        if not products:
            sections.append(f"## {platform.value.upper()}\nNo results found.")
            continue
        lines = []
        for index, p in enumerate(products, start=1):
            parts = [f'{index}. "{p.title}"', f"   Price USD: {p.price_formatted} (raw: {p.price_raw if p.price_raw is not None else 'N/A'})"]
            if p.price_local is not None:
                parts.append(f"   Price local: {p.price_local} {p.local_currency_code or currency_code}")
            if p.moq:
                parts.append(f"   MOQ: {p.moq} {p.unit or 'units'}")
            if p.rating is not None:
                parts.append(f"   Rating: {p.rating}/5 ({p.review_count or 0} reviews)")
            if p.seller_name:
                parts.append(f"   Seller: {p.seller_name}{' (verified)' if p.is_verified else ''}")
            if p.source_domain:
                parts.append(f"   Source: {p.source_domain}")
            if p.condition:
                parts.append(f"   Condition: {p.condition}")
            lines.append("\n".join(parts))
        sections.append(f"## {platform.value.upper()} ({len(products)} results)\n" + "\n\n".join(lines))
    return "\n\n---\n\n".join(sections)


def _system_prompt(metrics: Dict[str, Any], currency_code: str, exchange_rate: float) -> str:
    return f"""You are a wholesale sourcing analyst. Listings come from up to 7 sources:
- wholesale: "aliexpress" (affiliate API) and "wholesale" (Alibaba, DHgate, Made-in-China and similar)
- retail: "amazon", "ebay", "walmart", "google_shopping" (US retail)
- "local_retail": retail prices in the target country

Exchange rate: 1 USD = {exchange_rate} {currency_code}

The price figures are already computed and must not be changed:
- wholesale floor: {metrics['wholesale_floor']}
- retail ceiling: {metrics['retail_ceiling']}
- local retail median: {metrics['local_retail_median']}
- gross margin range: {metrics['gross_margin_pct_min']}% to {metrics['gross_margin_pct_max']}%

Provide:
- best_source_platform: the platform offering the best value for bulk sourcing.
- arbitrage_signal: one sentence on the price gap between sourcing and the local market.
- summary: 2-4 sentences covering wholesale supply, retail pricing, the local market and importable margin. Mention sources with no results."""


def no_results_analysis(currency_code: str, exchange_rate: float) -> PriceAnalysis:
    return PriceAnalysis(
        currency="USD",
        local_currency_code=currency_code,
        exchange_rate=exchange_rate,
        summary=NO_RESULTS_SUMMARY,
    )


async def synthesize_prices(
    platforms: PlatformResults,
    currency_code: str,
    exchange_rate: float,
    extractor: StructuredExtractor,
) -> PriceAnalysis:
    """Price analysis over every platform; numbers are computed, the model writes the narrative."""
    if platforms.total() == 0:
        return no_results_analysis(currency_code, exchange_rate)

    metrics = compute_price_metrics(platforms, exchange_rate)
    floor_platform = metrics.pop("floor_platform")
    try:
        narrative = await extractor.complete(
            _system_prompt(metrics, currency_code, exchange_rate),
            f"Analyze these product listings across all sources:\n\n{_render_listings(platforms, currency_code)}",
            PriceNarrative,
            max_tokens=1500,
        )
    except Exception as exc:  # noqa: BLE001
        record_degraded("price", exc)
        narrative = PriceNarrative(
            best_source_platform=floor_platform,
            summary=(
                "Price narrative could not be synthesized. Floor, ceiling and margins were computed "
                "directly from the listings that were found."
            ),
        )

    return PriceAnalysis(
        **metrics,
        currency="USD",
        local_currency_code=currency_code,
        exchange_rate=exchange_rate,
        best_source_platform=narrative.best_source_platform or floor_platform,
        arbitrage_signal=narrative.arbitrage_signal,
        summary=narrative.summary,
    )


__all__ = ["NO_RESULTS_SUMMARY", "PriceNarrative", "compute_price_metrics", "no_results_analysis", "synthesize_prices"]

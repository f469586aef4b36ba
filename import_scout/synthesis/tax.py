from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..interfaces import StructuredExtractor
from ..models import ImpositiveReport, LandedCostBreakdown, PricingContext, SearchResponse, TaxLineItem
from ..telemetry import record_degraded
from .sources import CitedSource, fallback_sources, flatten_results, normalise_sources, render_search_context

DEGRADED_TAX_SUMMARY = (
    "Unable to compute landed cost at this time. Please consult a customs broker for accurate tax calculations."
)


class TaxExtraction(BaseModel):
    import_duty_pct: Optional[float] = None
    vat_rate_pct: Optional[float] = None
    additional_taxes: List[TaxLineItem] = Field(default_factory=list)
    estimated_shipping_per_unit_usd: Optional[float] = None
    other_fees_usd: Optional[float] = None
    total_tax_burden_pct: Optional[float] = None
    tax_summary: str
    importer_tips: List[str] = Field(default_factory=list)
    sources: List[CitedSource] = Field(default_factory=list)


def compute_landed_cost(
    wholesale_unit_price_usd: Optional[float],
    *,
    shipping_per_unit_usd: Optional[float],
    duty_pct: Optional[float],
    vat_pct: Optional[float],
    other_fees_usd: Optional[float],
    exchange_rate: float,
    local_retail_price_usd: Optional[float],
) -> LandedCostBreakdown:
    """Per-unit landed cost; VAT compounds on CIF plus duty.

    Without a wholesale price every numeric field is null except the
    pass-through local retail price. Missing rates and fees count as zero.
    """
    if wholesale_unit_price_usd is None:
        return LandedCostBreakdown(local_retail_price_usd=local_retail_price_usd)

    shipping = shipping_per_unit_usd or 0.0
    fees = other_fees_usd or 0.0
    cif = wholesale_unit_price_usd + shipping
    duty = cif * (duty_pct or 0.0) / 100
    vat = (cif + duty) * (vat_pct or 0.0) / 100
    total = cif + duty + vat + fees

    effective = None
    if wholesale_unit_price_usd > 0:
        effective = round((total - wholesale_unit_price_usd) / wholesale_unit_price_usd * 100, 2)
    net_margin = None
    if local_retail_price_usd:
        net_margin = round((local_retail_price_usd - total) / local_retail_price_usd * 100, 2)

    return LandedCostBreakdown(
        wholesale_unit_price_usd=wholesale_unit_price_usd,
        estimated_shipping_per_unit_usd=round(shipping, 4),
        cif_value_usd=round(cif, 4),
        duty_amount_usd=round(duty, 4),
        vat_amount_usd=round(vat, 4),
        other_fees_usd=round(fees, 4),
        total_landed_cost_usd=round(total, 4),
        total_landed_cost_local=round(total * exchange_rate, 2),
        effective_tax_rate_pct=effective,
        net_margin_pct=net_margin,
        local_retail_price_usd=local_retail_price_usd,
    )


def _system_prompt(pricing: PricingContext) -> str:
    floor = f"${pricing.wholesale_floor_usd:.2f} USD" if pricing.wholesale_floor_usd is not None else "Not available"
    median = (
        f"${pricing.local_retail_median_usd:.2f} USD" if pricing.local_retail_median_usd is not None else "Not available"
    )
    return f"""You are an international trade cost analyst specialising in import taxation.

Live pricing data:
- Wholesale floor price: {floor}
- Local retail median: {median}
- Best sourcing platform: {pricing.best_source_platform or "Unknown"}
- Exchange rate: 1 USD = {pricing.exchange_rate} {pricing.local_currency_code}

Extract from the search results:
- import_duty_pct: customs duty for the HS code (MFN when several rates exist).
- vat_rate_pct: standard VAT / sales tax / IVA applied to imports.
- additional_taxes: anti-dumping duties, excise, processing fees, port handling; with rate, description and base.
- total_tax_burden_pct: effective total tax on the import.
- estimated_shipping_per_unit_usd: realistic per-unit shipping (10-20% of product cost by air, 3-8% by sea).
- other_fees_usd: per-unit sum of fixed fees, if any.
- tax_summary: 2-3 sentences on the tax burden in plain language.
- importer_tips: 3-5 practical tips on reducing import cost.
- sources: cited pages with title, url, domain, snippet and relevance_score (0-1).

Use only rates found in the results. If a rate is not found, use null; do not guess."""


def degraded_tax_report(
    hs_code: str,
    country_code: str,
    pricing: PricingContext,
    responses: Sequence[SearchResponse],
) -> ImpositiveReport:
    return ImpositiveReport(
        country_code=country_code,
        hs_code=hs_code,
        landed_cost=LandedCostBreakdown(
            wholesale_unit_price_usd=pricing.wholesale_floor_usd,
            local_retail_price_usd=pricing.local_retail_median_usd,
        ),
        tax_summary=DEGRADED_TAX_SUMMARY,
        sources=fallback_sources(flatten_results(responses)),
    )


async def synthesize_impositive_report(
    hs_code: str,
    country_code: str,
    product_name: str,
    pricing: PricingContext,
    responses: Sequence[SearchResponse],
    extractor: StructuredExtractor,
) -> ImpositiveReport:
    user = (
        f"Analyze import taxes for:\n- Product: {product_name}\n- HS Code: {hs_code}\n"
        f"- Target Country: {country_code}\n\n{render_search_context(responses)}\n\n"
        "Extract every tax rate, a per-unit shipping estimate and practical importer tips."
    )
    try:
        extracted = await extractor.complete(_system_prompt(pricing), user, TaxExtraction, max_tokens=4096)
    except Exception as exc:  # noqa: BLE001
        record_degraded("impositive", exc)
        return degraded_tax_report(hs_code, country_code, pricing, responses)

    landed_cost = compute_landed_cost(
        pricing.wholesale_floor_usd,
        shipping_per_unit_usd=extracted.estimated_shipping_per_unit_usd,
        duty_pct=extracted.import_duty_pct,
        vat_pct=extracted.vat_rate_pct,
        other_fees_usd=extracted.other_fees_usd,
        exchange_rate=pricing.exchange_rate,
        local_retail_price_usd=pricing.local_retail_median_usd,
    )
    return ImpositiveReport(
        country_code=country_code,
        hs_code=hs_code,
        import_duty_pct=extracted.import_duty_pct,
        vat_rate_pct=extracted.vat_rate_pct,
        additional_taxes=extracted.additional_taxes,
        total_tax_burden_pct=extracted.total_tax_burden_pct,
        landed_cost=landed_cost,
        tax_summary=extracted.tax_summary,
        importer_tips=extracted.importer_tips,
        sources=normalise_sources(extracted.sources),
    )


__all__ = ["TaxExtraction", "compute_landed_cost", "degraded_tax_report", "synthesize_impositive_report"]

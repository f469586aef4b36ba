from __future__ import annotations

from typing import List, Sequence

from pydantic import BaseModel, Field

from ..interfaces import StructuredExtractor
from ..models import CompetitionLevel, MarketReport, SearchResponse
from ..telemetry import record_degraded
from .sources import CitedSource, fallback_sources, flatten_results, normalise_sources, render_search_context

MAX_LIST_ITEMS = 10

MARKET_PROMPT = """You are a market research analyst helping importers understand the competitive landscape for a product category in one country.

From the web search results produce:
1. competition_level: "low", "medium", "high" or "very_high" (player count and strength, saturation, entry barriers, brand dominance). Be honest about saturated markets.
2. top_competitors: 3-8 brands or sellers actually active in the country, local and international.
3. top_channels: 3-6 sales channels, online and offline, ordered by volume and accessibility for a new entrant.
4. positioning_tip: one 2-4 sentence paragraph on price point, differentiation and target segment.
5. summary: 2-3 sentence executive summary on demand, competition, timing and gaps.
6. sources: cite every source used with relevance_score 0-1.

Only include information supported by the search results."""


class MarketExtraction(BaseModel):
    competition_level: CompetitionLevel
    top_competitors: List[str] = Field(default_factory=list)
    top_channels: List[str] = Field(default_factory=list)
    positioning_tip: str
    summary: str
    sources: List[CitedSource] = Field(default_factory=list)


def degraded_market_report(country_code: str, responses: Sequence[SearchResponse]) -> MarketReport:
    return MarketReport(
        country_code=country_code,
        positioning_tip="Unable to generate positioning advice. Please research the local market manually.",
        summary="Unable to synthesize market data. Please consult local market research reports.",
        sources=fallback_sources(flatten_results(responses)),
    )


async def synthesize_market_report(
    country_code: str,
    responses: Sequence[SearchResponse],
    extractor: StructuredExtractor,
) -> MarketReport:
    user = (
        f'Market landscape for importing into country "{country_code}".\n\n'
        f"{render_search_context(responses)}\n\n"
        "Produce a practical market intelligence report for a product importer."
    )
    try:
        extracted = await extractor.complete(MARKET_PROMPT, user, MarketExtraction, max_tokens=3072)
    except Exception as exc:  # noqa: BLE001
        record_degraded("market", exc)
        return degraded_market_report(country_code, responses)

    return MarketReport(
        country_code=country_code,
        competition_level=extracted.competition_level,
        top_competitors=extracted.top_competitors[:MAX_LIST_ITEMS],
        top_channels=extracted.top_channels[:MAX_LIST_ITEMS],
        positioning_tip=extracted.positioning_tip,
        summary=extracted.summary,
        sources=normalise_sources(extracted.sources),
    )


__all__ = ["MarketExtraction", "degraded_market_report", "synthesize_market_report"]

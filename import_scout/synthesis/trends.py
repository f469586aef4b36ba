from __future__ import annotations

import json
from typing import List, Optional

from pydantic import BaseModel, Field

from ..interfaces import StructuredExtractor
from ..models import (
    TrendDirection,
    TrendQuery,
    TrendRegion,
    TrendReport,
    TrendsRawData,
    TrendTimeseriesPoint,
    TrendTopic,
)
from ..telemetry import record_degraded

TREND_PROMPT = """You are a market research analyst interpreting Google Trends data.

You receive four payloads for one keyword and region: TIMESERIES, GEO_MAP, RELATED_QUERIES and RELATED_TOPICS.

1. trend_direction, from the timeseries: "strong_up", "up", "flat", "down" or "strong_down".
2. trend_score 0-100: current interest, growth trajectory, consistency and regional breadth.
3. is_seasonal and peak_month (e.g. "November") when there are recurring peaks.
4. rising_queries and rising_topics: prefer "rising" items with the highest growth; keep non-English text as is.
5. regions: region name, code and interest 0-100, highest first.
6. timeseries: week_start as YYYY-MM-DD with interest_value 0-100.
7. summary: two sentences on what the data means for a sourcing decision.

Return empty lists for sections without data."""


class TrendExtraction(BaseModel):
    trend_score: float = Field(ge=0, le=100)
    trend_direction: TrendDirection
    peak_month: Optional[str] = None
    is_seasonal: bool = False
    timeseries: List[TrendTimeseriesPoint] = Field(default_factory=list)
    regions: List[TrendRegion] = Field(default_factory=list)
    rising_queries: List[TrendQuery] = Field(default_factory=list)
    rising_topics: List[TrendTopic] = Field(default_factory=list)
    summary: Optional[str] = None


def degraded_trend_report(keyword: str, geo: str, date_range: str, reason: str) -> TrendReport:
    return TrendReport(keyword=keyword, geo=geo, date_range=date_range, summary=reason)


def _dump(payload: dict) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


async def synthesize_trend_report(
    keyword: str,
    geo: str,
    raw: TrendsRawData,
    extractor: StructuredExtractor,
    *,
    date_range: str = "today 12-m",
) -> TrendReport:
    """Interpret all four trend payloads for one keyword/geo pair."""
    if not any((raw.timeseries, raw.geo_map, raw.related_queries, raw.related_topics)):
        error = ValueError("no trend payloads returned")
        record_degraded("trends", error)
        return degraded_trend_report(
            keyword, geo, date_range, "No Google Trends data was returned for this keyword and region."
        )

    user = (
        f'Google Trends data for keyword "{keyword}" in region "{geo}":\n\n'
        f"## TIMESERIES\n{_dump(raw.timeseries)}\n\n"
        f"## GEO MAP (interest by region)\n{_dump(raw.geo_map)}\n\n"
        f"## RELATED QUERIES\n{_dump(raw.related_queries)}\n\n"
        f"## RELATED TOPICS\n{_dump(raw.related_topics)}\n\n"
        "Synthesize this into a trend report focused on product sourcing decisions."
    )
    try:
        extracted = await extractor.complete(TREND_PROMPT, user, TrendExtraction, max_tokens=4096)
    except Exception as exc:  # noqa: BLE001
        record_degraded("trends", exc)
        return degraded_trend_report(
            keyword, geo, date_range, "Trend data could not be interpreted; review the raw search interest manually."
        )

    return TrendReport(
        keyword=keyword,
        geo=geo,
        date_range=date_range,
        trend_score=extracted.trend_score,
        trend_direction=extracted.trend_direction,
        peak_month=extracted.peak_month,
        is_seasonal=extracted.is_seasonal,
        timeseries=extracted.timeseries,
        regions=extracted.regions,
        rising_queries=extracted.rising_queries,
        rising_topics=extracted.rising_topics,
        summary=extracted.summary,
    )


__all__ = ["TrendExtraction", "degraded_trend_report", "synthesize_trend_report"]

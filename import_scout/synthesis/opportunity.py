from __future__ import annotations

from ..interfaces import StructuredExtractor
from ..models import OpportunityContext, OpportunityReport
from ..telemetry import record_degraded

NEUTRAL_SCORE = 50.0
ENGINE_FAILURE_FLAG = "Opportunity synthesis engine failed; review the individual reports manually"

OPPORTUNITY_PROMPT = """You are a wholesale import opportunity analyst. The user message is the full research context as JSON: product metadata, raw platform listings, price analysis and, when available, the trend, regulation, tax/landed-cost and market reports (null when that stage did not run).

Use the raw listings to validate pricing and spot arbitrage; use the reports for summary metrics.

opportunity_score (0-100):
- 80-100 strong: high margins, growing trend, manageable regulation, low-medium competition.
- 60-79 good with caveats.
- 40-59 marginal: thin margins, flat or declining trend, or regulatory barriers.
- 20-39 weak: several red flags.
- 0-19 avoid: negative margins, severe blockers or collapsing demand.

Also give estimated_margin_pct (prefer the landed-cost net margin), best_source_platform, best_launch_month (null if not seasonal), 3-5 keyword_gaps, 2-4 variant_suggestions, every risk in risk_flags, and a 3-5 sentence overall_verdict.

Be direct and do not inflate scores."""


def fallback_opportunity(context: OpportunityContext) -> OpportunityReport:
    """Neutral report built from the price analysis and trend report alone."""
    price = context.price_analysis
    trend = context.trend_report
    return OpportunityReport(
        opportunity_score=NEUTRAL_SCORE,
        estimated_margin_pct=price.gross_margin_pct_min,
        best_source_platform=price.best_source_platform,
        best_launch_month=trend.peak_month if trend else None,
        risk_flags=[ENGINE_FAILURE_FLAG],
        overall_verdict=(
            "The opportunity scoring engine encountered an error. Review the individual reports "
            "to form your own assessment."
        ),
    )


async def score_opportunity(context: OpportunityContext, extractor: StructuredExtractor) -> OpportunityReport:
    user = (
        "Research context:\n"
        f"{context.model_dump_json(indent=2)}\n\n"
        "Produce the opportunity assessment with score, risks and actionable recommendations."
    )
    try:
        return await extractor.complete(OPPORTUNITY_PROMPT, user, OpportunityReport, max_tokens=3072)
    except Exception as exc:  # noqa: BLE001
        record_degraded("opportunity", exc)
        return fallback_opportunity(context)


__all__ = ["ENGINE_FAILURE_FLAG", "NEUTRAL_SCORE", "fallback_opportunity", "score_opportunity"]

from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..interfaces import StructuredExtractor
from ..models import ImportStep, RegulationReport, SearchResponse
from ..telemetry import record_degraded
from .sources import CitedSource, fallback_sources, flatten_results, normalise_sources, render_search_context

DEGRADED_REGULATION_SUMMARY = (
    "Unable to synthesize regulation data. Please consult official customs authorities."
)

REGULATION_PROMPT = """You are an international trade compliance specialist helping importers understand exactly what they must do to import a product legally.

From web search results about a product (by HS code) and a target country, produce:
1. duty_rate_percent from official sources, or null.
2. required_certifications needed before the goods can enter; be specific ("FCC Part 15", not "FCC").
3. prohibited_variants that are banned, and why.
4. labeling_requirements: language, warnings, origin marking, packaging.
5. quota_info and licensing_info, or null.
6. import_steps: a chronological checklist (certification, customs registration, documents, inspection, clearance, post-entry). Mark steps that can block the import with is_critical. Add estimated time and cost when known. General customs process knowledge for the country is allowed here.
7. summary: 2-3 direct sentences on the hardest compliance hurdles.
8. sources: cite every source used, .gov first, with relevance_score 0-1.

Only state requirements supported by the search results."""


class RegulationExtraction(BaseModel):
    duty_rate_percent: Optional[float] = None
    required_certifications: List[str] = Field(default_factory=list)
    prohibited_variants: List[str] = Field(default_factory=list)
    labeling_requirements: List[str] = Field(default_factory=list)
    quota_info: Optional[str] = None
    licensing_info: Optional[str] = None
    import_steps: List[ImportStep] = Field(default_factory=list)
    summary: str
    sources: List[CitedSource] = Field(default_factory=list)


def degraded_regulation_report(
    hs_code: str,
    country_code: str,
    responses: Sequence[SearchResponse],
) -> RegulationReport:
    return RegulationReport(
        country_code=country_code,
        hs_code=hs_code,
        summary=DEGRADED_REGULATION_SUMMARY,
        sources=fallback_sources(flatten_results(responses)),
    )


async def synthesize_regulation_report(
    hs_code: str,
    country_code: str,
    responses: Sequence[SearchResponse],
    extractor: StructuredExtractor,
) -> RegulationReport:
    user = (
        f'Import compliance requirements for HS code "{hs_code}" into country "{country_code}".\n\n'
        f"{render_search_context(responses)}\n\n"
        "Produce a practical compliance report with a step-by-step import checklist."
    )
    try:
        extracted = await extractor.complete(REGULATION_PROMPT, user, RegulationExtraction, max_tokens=4096)
    except Exception as exc:  # noqa: BLE001
        record_degraded("regulation", exc)
        return degraded_regulation_report(hs_code, country_code, responses)

    steps = sorted(extracted.import_steps, key=lambda step: step.step_number)
    return RegulationReport(
        country_code=country_code,
        hs_code=hs_code,
        duty_rate_percent=extracted.duty_rate_percent,
        required_certifications=extracted.required_certifications,
        prohibited_variants=extracted.prohibited_variants,
        labeling_requirements=extracted.labeling_requirements,
        quota_info=extracted.quota_info,
        licensing_info=extracted.licensing_info,
        import_steps=steps,
        summary=extracted.summary,
        sources=normalise_sources(extracted.sources),
    )


__all__ = ["RegulationExtraction", "degraded_regulation_report", "synthesize_regulation_report"]

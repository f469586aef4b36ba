from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypedDict

from langgraph.graph import END, START, StateGraph
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import PreconditionError, ValidationError

from ..interfaces import SessionStore, StructuredExtractor
from ..models import (
    ImpositiveReport,
    MarketReport,
    OpportunityContext,
    OpportunityReport,
    ProductMetadata,
    RegulationReport,
    SourcingResult,
    StageTag,
    TrendReport,
)
from ..synthesis.opportunity import score_opportunity
from ..telemetry import emit_log

REQUIRED_STAGES = (StageTag.PRODUCT_METADATA, StageTag.SOURCING)

_OPTIONAL_FACETS: Dict[StageTag, Type[BaseModel]] = {
    StageTag.TRENDS: TrendReport,
    StageTag.REGULATION: RegulationReport,
    StageTag.IMPOSITIVE: ImpositiveReport,
    StageTag.MARKET: MarketReport,
}


class OpportunityState(TypedDict, total=False):
    session_id: str
    cached: bool
    stages: Dict[str, Dict[str, Any]]
    context: OpportunityContext
    report: OpportunityReport


def _optional_facet(session_id: str, stage: StageTag, raw: Optional[Dict[str, Any]]) -> Optional[BaseModel]:
    if raw is None:
        return None
    try:
        return _OPTIONAL_FACETS[stage].model_validate(raw)
    except PydanticValidationError as exc:
        emit_log(
            "opportunity.facet.unreadable",
            extra={"session_id": session_id, "stage": stage.value, "error": str(exc)},
            level=logging.WARNING,
        )
        return None


def build_context(session_id: str, stages: Dict[str, Dict[str, Any]]) -> OpportunityContext:
    """Assemble the scoring context; metadata and sourcing are required, the other facets optional."""
    missing = [stage.value for stage in REQUIRED_STAGES if stage.value not in stages]
    if missing:
        raise PreconditionError(
            "Opportunity synthesis requires product metadata and sourcing data",
            session_id=session_id,
            missing=missing,
        )
    try:
        metadata = ProductMetadata.model_validate(stages[StageTag.PRODUCT_METADATA.value])
        sourcing = SourcingResult.model_validate(stages[StageTag.SOURCING.value])
    except PydanticValidationError as exc:
        raise ValidationError("Stored stage data is unreadable", session_id=session_id, error=str(exc)) from exc

    facets = {stage: _optional_facet(session_id, stage, stages.get(stage.value)) for stage in _OPTIONAL_FACETS}
    return OpportunityContext(
        session_id=session_id,
        product_metadata=metadata,
        platforms=sourcing.platforms,
        price_analysis=sourcing.price_analysis,
        trend_report=facets[StageTag.TRENDS],
        regulation_report=facets[StageTag.REGULATION],
        impositive_report=facets[StageTag.IMPOSITIVE],
        market_report=facets[StageTag.MARKET],
        local_currency_code=sourcing.local_currency_code,
        exchange_rate=sourcing.exchange_rate,
    )


def build_opportunity_graph(*, store: SessionStore, extractor: StructuredExtractor) -> StateGraph:
    graph = StateGraph(OpportunityState)

    async def cached_node(state: OpportunityState) -> OpportunityState:
        stored = await store.get_assessment(state["session_id"])
        if stored is None:
            return {"cached": False}
        emit_log("opportunity.cache_hit", extra={"session_id": state["session_id"]})
        return {"cached": True, "report": stored.report()}

    async def load_node(state: OpportunityState) -> OpportunityState:
        stages = await store.get_all(state["session_id"])
        return {"stages": stages}

    def context_node(state: OpportunityState) -> OpportunityState:
        context = build_context(state["session_id"], state.get("stages", {}))
        emit_log(
            "opportunity.context_ready",
            extra={
                "session_id": state["session_id"],
                "facets": sorted(
                    name
                    for name, value in (
                        ("trends", context.trend_report),
                        ("regulation", context.regulation_report),
                        ("impositive", context.impositive_report),
                        ("market", context.market_report),
                    )
                    if value is not None
                ),
            },
        )
        return {"context": context}

    async def score_node(state: OpportunityState) -> OpportunityState:
        return {"report": await score_opportunity(state["context"], extractor)}

    async def persist_node(state: OpportunityState) -> OpportunityState:
        report_json = state["report"].model_dump_json()
        await store.save_assessment(state["session_id"], state["context"].model_dump_json(), report_json)
        emit_log(
            "opportunity.persisted",
            extra={"session_id": state["session_id"], "score": state["report"].opportunity_score},
        )
        # same parse path as a cache hit
        return {"report": OpportunityReport.model_validate_json(report_json)}

    graph.add_node("check_cache", cached_node)
    graph.add_node("load_stages", load_node)
    graph.add_node("build_context", context_node)
    graph.add_node("score", score_node)
    graph.add_node("persist", persist_node)

    graph.add_edge(START, "check_cache")
    graph.add_conditional_edges(
        "check_cache",
        lambda state: END if state.get("cached") else "load_stages",
        {"load_stages": "load_stages", END: END},
    )
    graph.add_edge("load_stages", "build_context")
    graph.add_edge("build_context", "score")
    graph.add_edge("score", "persist")
    graph.add_edge("persist", END)
    return graph


__all__ = ["OpportunityState", "REQUIRED_STAGES", "build_context", "build_opportunity_graph"]

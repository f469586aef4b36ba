"""LangGraph workflows for the multi-step research stages."""

from .opportunity_graph import OpportunityState, build_context, build_opportunity_graph
from .sourcing_graph import SourcingState, build_sourcing_graph, sourcing_result, stamp_local_prices

__all__ = [
    "OpportunityState",
    "SourcingState",
    "build_context",
    "build_opportunity_graph",
    "build_sourcing_graph",
    "sourcing_result",
    "stamp_local_prices",
]

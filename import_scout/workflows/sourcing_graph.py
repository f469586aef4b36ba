from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import END, START, StateGraph

from ..interfaces import StructuredExtractor
from ..models import Platform, PlatformProduct, PlatformResults, PriceAnalysis, SourcingResult
from ..providers import AliExpressClient, ExchangeRateClient, LocalRetailClient, SerpApiClient
from ..reference import country_name as lookup_country_name
from ..reference import currency_for_country
from ..synthesis.prices import no_results_analysis, synthesize_prices
from ..telemetry import emit_log


class SourcingState(TypedDict, total=False):
    query: str
    country_code: str
    country_name: str
    currency_code: str
    exchange_rate: float
    platforms: PlatformResults
    price_analysis: PriceAnalysis


def stamp_local_prices(platforms: PlatformResults, exchange_rate: float, currency_code: str) -> PlatformResults:
    """Fill ``price_local`` for every USD-priced listing that does not carry one yet."""
    stamped: Dict[str, List[PlatformProduct]] = {}
    for platform in Platform:
        products = []
        for product in platforms.for_platform(platform):
            if product.price_raw is not None and product.price_local is None:
                product = product.model_copy(
                    update={
                        "price_local": round(product.price_raw * exchange_rate, 2),
                        "local_currency_code": currency_code,
                    }
                )
            elif product.local_currency_code is None:
                product = product.model_copy(update={"local_currency_code": currency_code})
            products.append(product)
        stamped[platform.value] = products
    return PlatformResults(**stamped)


def build_sourcing_graph(
    *,
    serpapi: SerpApiClient,
    aliexpress: AliExpressClient,
    local_retail: LocalRetailClient,
    exchange: ExchangeRateClient,
    extractor: StructuredExtractor,
) -> StateGraph:
    graph = StateGraph(SourcingState)

    def resolve_node(state: SourcingState) -> SourcingState:
        code = state["country_code"].upper()
        return {
            "country_code": code,
            "country_name": state.get("country_name") or lookup_country_name(code),
            "currency_code": currency_for_country(code),
        }

    async def fan_out_node(state: SourcingState) -> SourcingState:
        query = state["query"]
        code = state["country_code"]
        results = await asyncio.gather(
            exchange.get_rate(code),
            aliexpress.search(query),
            serpapi.search_wholesale(query),
            serpapi.search_all_retail(query),
            local_retail.search(query, code, state["country_name"], state["currency_code"]),
            return_exceptions=True,
        )
        rate, ali, wholesale, retail, local = results
        for label, outcome in zip(("exchange_rate", "aliexpress", "wholesale", "retail", "local_retail"), results):
            if isinstance(outcome, Exception):
                emit_log(
                    "sourcing.fan_out.error",
                    extra={"provider": label, "error": repr(outcome)},
                    level=logging.ERROR,
                )

        exchange_rate = 1.0 if isinstance(rate, Exception) else rate.rate
        retail = {} if isinstance(retail, Exception) else retail
        platforms = PlatformResults(
            aliexpress=[] if isinstance(ali, Exception) else ali,
            wholesale=[] if isinstance(wholesale, Exception) else wholesale,
            amazon=retail.get(Platform.AMAZON.value, []),
            ebay=retail.get(Platform.EBAY.value, []),
            walmart=retail.get(Platform.WALMART.value, []),
            google_shopping=retail.get(Platform.GOOGLE_SHOPPING.value, []),
            local_retail=[] if isinstance(local, Exception) else local,
        )
        emit_log(
            "sourcing.fan_out.completed",
            extra={
                "country_code": code,
                "exchange_rate": exchange_rate,
                "counts": {p.value: len(platforms.for_platform(p)) for p in Platform},
            },
        )
        return {"exchange_rate": exchange_rate, "platforms": platforms}

    def stamp_node(state: SourcingState) -> SourcingState:
        return {"platforms": stamp_local_prices(state["platforms"], state["exchange_rate"], state["currency_code"])}

    def no_results_node(state: SourcingState) -> SourcingState:
        emit_log("sourcing.no_results", extra={"query": state["query"]}, level=logging.WARNING)
        return {"price_analysis": no_results_analysis(state["currency_code"], state["exchange_rate"])}

    async def synthesize_node(state: SourcingState) -> SourcingState:
        analysis = await synthesize_prices(
            state["platforms"], state["currency_code"], state["exchange_rate"], extractor
        )
        return {"price_analysis": analysis}

    graph.add_node("resolve", resolve_node)
    graph.add_node("fan_out", fan_out_node)
    graph.add_node("stamp_local_prices", stamp_node)
    graph.add_node("no_results", no_results_node)
    graph.add_node("synthesize", synthesize_node)

    graph.add_edge(START, "resolve")
    graph.add_edge("resolve", "fan_out")
    graph.add_edge("fan_out", "stamp_local_prices")
    graph.add_conditional_edges(
        "stamp_local_prices",
        lambda state: "synthesize" if state["platforms"].total() else "no_results",
        {"synthesize": "synthesize", "no_results": "no_results"},
    )
    graph.add_edge("synthesize", END)
    graph.add_edge("no_results", END)
    return graph


def sourcing_result(state: SourcingState) -> SourcingResult:
    return SourcingResult(
        platforms=state["platforms"],
        price_analysis=state["price_analysis"],
        local_currency_code=state["currency_code"],
        exchange_rate=state["exchange_rate"],
    )


__all__ = ["SourcingState", "build_sourcing_graph", "sourcing_result", "stamp_local_prices"]

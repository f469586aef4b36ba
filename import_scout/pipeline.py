"""Session-scoped research pipeline.

``ResearchPipeline`` owns every collaborator (providers, the extraction
client, the session store and the shared TTL cache) and exposes one coroutine
per stage. Stages only communicate through the session store: metadata is
written by :meth:`ResearchPipeline.initiate_session`, facets are written under
their own stage tag, and :meth:`ResearchPipeline.synthesize_opportunity` reads
them all back.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

import httpx

from core.context import stage_context
from core.errors import NotFoundError, ValidationError
from core.telemetry import TelemetryClient, TelemetryMixin

from .cache import TTLCache
from .config import Settings
from .interfaces import SessionStore, StructuredExtractor
from .llm import StructuredExtractionClient
from .models import (
    Geolocation,
    ImpositiveReport,
    MarketReport,
    OpportunityReport,
    PricingContext,
    ProductMetadata,
    RegulationReport,
    ResearchSession,
    SessionInit,
    SourcingResult,
    StageTag,
    TrendReport,
)
from .providers import (
    AliExpressClient,
    ExchangeRateClient,
    GeolocationClient,
    JsonHttpClient,
    LocalRetailClient,
    SerpApiClient,
    TavilyClient,
    translate_keyword,
)
from .queries import build_market_queries, build_regulation_queries, build_tax_queries
from .reference import country_name
from .resilience import ProviderGuard
from .storage import create_session_store
from .synthesis import (
    extract_product_metadata,
    synthesize_impositive_report,
    synthesize_market_report,
    synthesize_regulation_report,
    synthesize_trend_report,
)
from .telemetry import stage_span
from .workflows import build_opportunity_graph, build_sourcing_graph, sourcing_result

DEFAULT_COUNTRY = "US"


def _usable_terms(terms: Sequence[str]) -> List[str]:
    return [term.strip() for term in terms if term and term.strip()]


def pricing_from_sourcing(sourcing: SourcingResult) -> PricingContext:
    """Pricing inputs for the tax stage, taken from a sourcing result."""
    analysis = sourcing.price_analysis
    return PricingContext(
        wholesale_floor_usd=analysis.wholesale_floor,
        local_retail_median_usd=analysis.local_retail_median,
        exchange_rate=sourcing.exchange_rate,
        local_currency_code=sourcing.local_currency_code,
        best_source_platform=analysis.best_source_platform,
    )


class ResearchPipeline(TelemetryMixin):
    def __init__(
        self,
        *,
        settings: Settings,
        extractor: StructuredExtractor,
        store: SessionStore,
        serpapi: SerpApiClient,
        aliexpress: AliExpressClient,
        tavily: TavilyClient,
        geolocation: GeolocationClient,
        exchange: ExchangeRateClient,
        local_retail: LocalRetailClient,
        cache: Optional[TTLCache] = None,
        telemetry_client: Optional[TelemetryClient] = None,
    ) -> None:
        super().__init__(telemetry_client)
        self.settings = settings
        self.extractor = extractor
        self.store = store
        self.serpapi = serpapi
        self.aliexpress = aliexpress
        self.tavily = tavily
        self.geolocation = geolocation
        self.exchange = exchange
        self.local_retail = local_retail
        self.cache = cache if cache is not None else TTLCache()
        self._sourcing_graph = build_sourcing_graph(
            serpapi=serpapi,
            aliexpress=aliexpress,
            local_retail=local_retail,
            exchange=exchange,
            extractor=extractor,
        ).compile()
        self._opportunity_graph = build_opportunity_graph(store=store, extractor=extractor).compile()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: Optional[SessionStore] = None,
        extractor: Optional[StructuredExtractor] = None,
        memory: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        telemetry_client: Optional[TelemetryClient] = None,
    ) -> "ResearchPipeline":
        """Wire the production collaborators around one shared cache and provider guard."""
        cache: TTLCache = TTLCache(ttl=settings.exchange_rate_ttl_seconds)
        guard = ProviderGuard()

        def http(name: str) -> JsonHttpClient:
            return JsonHttpClient(name, timeout=settings.timeout_for(name), guard=guard, transport=transport)

        extractor = extractor or StructuredExtractionClient.from_settings(settings)
        serpapi = SerpApiClient(settings, http=http("serpapi"))
        tavily = TavilyClient(settings, http=http("tavily"))
        return cls(
            settings=settings,
            extractor=extractor,
            store=store or create_session_store(settings, memory=memory),
            serpapi=serpapi,
            aliexpress=AliExpressClient(settings, http=http("aliexpress")),
            tavily=tavily,
            geolocation=GeolocationClient(settings, http=http("geolocation")),
            exchange=ExchangeRateClient(settings, cache=cache, http=http("exchange_rate")),
            local_retail=LocalRetailClient(serpapi=serpapi, search=tavily, extractor=extractor, cache=cache),
            cache=cache,
            telemetry_client=telemetry_client,
        )

    async def _persist(self, session_id: Optional[str], stage: StageTag, value: Any) -> None:
        if not session_id:
            return
        await self.store.put(session_id, stage.value, value.model_dump(mode="json"))
        self.emit_event("stage.persisted", stage_tag=stage.value)

    # --- stage entry points -------------------------------------------------

    async def initiate_session(
        self,
        raw_query: str,
        country_code: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> SessionInit:
        """Resolve the country, extract product metadata and open the session.

        The country is the explicit ``country_code`` when given, otherwise the
        geolocated one, otherwise ``US``. Metadata extraction failures propagate:
        without metadata no later stage can run.
        """
        raw_query = (raw_query or "").strip()
        if not raw_query:
            raise ValidationError("raw_query must not be empty")

        session_id = str(uuid.uuid4())
        with stage_context("initiate", session_id), stage_span("initiate", session_id=session_id):
            located = None if country_code else await self.geolocation.locate(client_ip)
            code = (country_code or (located.country_code if located else None) or DEFAULT_COUNTRY).upper()
            geolocation = located or Geolocation(country_code=code, country_name=country_name(code))

            metadata = await extract_product_metadata(raw_query, code, self.extractor)
            metadata = metadata.model_copy(update={"id": str(uuid.uuid4()), "session_id": session_id})

            await self.store.create_session(ResearchSession(session_id=session_id, raw_query=raw_query, country_code=code))
            await self._persist(session_id, StageTag.PRODUCT_METADATA, metadata)
            self.emit_event("session.initiated", country_code=code, geolocated=located is not None)
        return SessionInit(session_id=session_id, geolocation=geolocation, product_metadata=metadata)

    async def run_sourcing(
        self,
        normalized_query: str,
        country_code: str,
        session_id: Optional[str] = None,
        country_name: Optional[str] = None,
    ) -> SourcingResult:
        with stage_context("sourcing", session_id), stage_span("sourcing", country_code=country_code):
            state: Dict[str, Any] = {"query": normalized_query, "country_code": country_code}
            if country_name:
                state["country_name"] = country_name
            result = sourcing_result(await self._sourcing_graph.ainvoke(state))
            await self._persist(session_id, StageTag.SOURCING, result)
        return result

    async def run_trends(
        self,
        keywords: Sequence[str],
        geo: str,
        session_id: Optional[str] = None,
        use_regional_language: bool = False,
    ) -> TrendReport:
        """Trend report for the first keyword, optionally translated to the country's language."""
        keywords = _usable_terms(keywords)
        if not keywords:
            raise ValidationError("At least one trend keyword is required")
        geo = geo.upper()
        primary = keywords[0]

        with stage_context("trends", session_id), stage_span("trends", geo=geo):
            if use_regional_language:
                translated = await translate_keyword(primary, geo, self.extractor)
                keyword, language_code, language_name = (
                    translated.translated,
                    translated.language_code,
                    translated.language_name,
                )
            else:
                keyword = primary
                language_code, language_name = "en", "English"

            raw = await self.serpapi.get_trends(keyword, geo, language_code)
            report = await synthesize_trend_report(
                keyword, geo, raw, self.extractor, date_range=self.settings.serpapi_trends_date
            )
            report = report.model_copy(
                update={
                    "original_keyword": primary,
                    "translated_keyword": keyword if keyword != primary else None,
                    "language_code": language_code,
                    "language_name": language_name,
                }
            )
            await self._persist(session_id, StageTag.TRENDS, report)
        return report

    async def run_regulation(
        self,
        hs_code: str,
        country_code: str,
        regulatory_flags: Sequence[str] = (),
        import_regulations: Sequence[str] = (),
        impositive_regulations: Sequence[str] = (),
        session_id: Optional[str] = None,
    ) -> RegulationReport:
        country_code = country_code.upper()
        with stage_context("regulation", session_id), stage_span("regulation", country_code=country_code):
            queries = build_regulation_queries(
                hs_code, country_code, regulatory_flags, import_regulations, impositive_regulations
            )
            responses = await self.tavily.search_many(queries)
            report = await synthesize_regulation_report(hs_code, country_code, responses, self.extractor)
            await self._persist(session_id, StageTag.REGULATION, report)
        return report

    async def run_tax(
        self,
        hs_code: str,
        product_name: str,
        country_code: str,
        pricing: Optional[PricingContext] = None,
        impositive_regulations: Sequence[str] = (),
        session_id: Optional[str] = None,
    ) -> ImpositiveReport:
        country_code = country_code.upper()
        pricing = pricing or PricingContext()
        with stage_context("tax", session_id), stage_span("tax", country_code=country_code):
            queries = build_tax_queries(hs_code, product_name, country_code, impositive_regulations)
            responses = await self.tavily.search_many(queries)
            report = await synthesize_impositive_report(
                hs_code, country_code, product_name, pricing, responses, self.extractor
            )
            await self._persist(session_id, StageTag.IMPOSITIVE, report)
        return report

    async def run_market(
        self,
        market_terms: Sequence[str],
        country_code: str,
        session_id: Optional[str] = None,
    ) -> MarketReport:
        terms = _usable_terms(market_terms)
        if not terms:
            raise ValidationError("At least one market search term is required")
        country_code = country_code.upper()
        with stage_context("market", session_id), stage_span("market", country_code=country_code):
            responses = await self.tavily.search_many(build_market_queries(terms, country_code))
            report = await synthesize_market_report(country_code, responses, self.extractor)
            await self._persist(session_id, StageTag.MARKET, report)
        return report

    async def synthesize_opportunity(self, session_id: str) -> OpportunityReport:
        """Score the session; a stored assessment is returned unchanged."""
        with stage_context("opportunity", session_id), stage_span("opportunity", session_id=session_id):
            state = await self._opportunity_graph.ainvoke({"session_id": session_id})
        return state["report"]

    async def get_opportunity(self, session_id: str) -> Optional[OpportunityReport]:
        return await self.store.get_report(session_id)

    async def get_session_data(self, session_id: str) -> Dict[str, Dict[str, Any]]:
        data = await self.store.get_all(session_id)
        if not data and await self.store.get_session(session_id) is None:
            raise NotFoundError("Unknown research session", session_id=session_id)
        return data

    # --- end to end ---------------------------------------------------------

    async def research(
        self,
        raw_query: str,
        country_code: Optional[str] = None,
        *,
        use_regional_language: bool = False,
    ) -> Dict[str, Any]:
        """Run every stage for one query; the facet stages run concurrently."""
        with stage_context("research"):
            try:
                return await self._research(raw_query, country_code, use_regional_language)
            except Exception as exc:
                self.capture_exception(exc, query=raw_query, country_code=country_code)
                raise

    async def _research(self, raw_query: str, country_code: Optional[str], use_regional_language: bool) -> Dict[str, Any]:
        init = await self.initiate_session(raw_query, country_code)
        session_id = init.session_id
        metadata: ProductMetadata = init.product_metadata
        code = init.geolocation.country_code

        async def sourcing_then_tax() -> List[Any]:
            sourcing = await self.run_sourcing(metadata.normalized_query, code, session_id, init.geolocation.country_name)
            tax = await self.run_tax(
                metadata.hs_code,
                metadata.product_name,
                code,
                pricing_from_sourcing(sourcing),
                metadata.impositive_regulations,
                session_id,
            )
            return [sourcing, tax]

        fallback = [metadata.product_name or metadata.normalized_query]
        outcomes = await asyncio.gather(
            sourcing_then_tax(),
            self.run_trends(_usable_terms(metadata.trend_keywords) or fallback, code, session_id, use_regional_language),
            self.run_regulation(
                metadata.hs_code,
                code,
                metadata.regulatory_flags,
                metadata.import_regulations,
                metadata.impositive_regulations,
                session_id,
            ),
            self.run_market(_usable_terms(metadata.market_search_terms) or fallback, code, session_id),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        (sourcing, tax), trends, regulation, market = outcomes
        opportunity = await self.synthesize_opportunity(session_id)
        return {
            "session_id": session_id,
            "geolocation": init.geolocation.model_dump(mode="json"),
            "product_metadata": metadata.model_dump(mode="json"),
            "sourcing": sourcing.model_dump(mode="json"),
            "trends": trends.model_dump(mode="json"),
            "regulation": regulation.model_dump(mode="json"),
            "impositive": tax.model_dump(mode="json"),
            "market": market.model_dump(mode="json"),
            "opportunity": opportunity.model_dump(mode="json"),
        }

    async def close(self) -> None:
        await self.store.close()


__all__ = ["DEFAULT_COUNTRY", "ResearchPipeline", "pricing_from_sourcing"]

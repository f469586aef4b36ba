from __future__ import annotations

import asyncio
from typing import List, Optional

from pydantic import BaseModel, Field

from ..cache import TTLCache
from ..interfaces import StructuredExtractor, WebSearchProvider
from ..models import Platform, PlatformProduct
from ..telemetry import record_provider_failure
from .serpapi import SerpApiClient

SUGGESTION_PROMPT = """Given a country, return the top 5-8 e-commerce and retail marketplace domains where consumers in that country typically buy products online. Include local marketplaces and international ones popular in that country.

Examples:
- Argentina: mercadolibre.com.ar, fravega.com, garbarino.com, musimundo.com, amazon.com
- Brazil: mercadolivre.com.br, magazineluiza.com.br, americanas.com.br, amazon.com.br
- Chile: mercadolibre.cl, falabella.com, ripley.cl, paris.cl, lider.cl
- Mexico: mercadolibre.com.mx, amazon.com.mx, liverpool.com.mx, walmart.com.mx
- USA: amazon.com, walmart.com, target.com, bestbuy.com, costco.com

Prefer country-specific domain variants. Also give the primary ISO 639-1 language code for Google searches."""

EXTRACTION_PROMPT = """You extract structured product pricing data from local retail search results for one country.
Extract as many distinct products and prices as possible, up to 10.

Rules:
- Give the local price and, when you can, an approximate USD equivalent.
- If only the local price is known, set price_usd to null.
- Take source_domain from the URL."""


class MarketplaceSuggestion(BaseModel):
    domains: List[str] = Field(default_factory=list, description="5-8 retail marketplace domains for the country")
    language_code: str = Field(default="en", description="ISO 639-1 code of the country's primary language")


class LocalRetailItem(BaseModel):
    title: str
    price_usd: Optional[float] = None
    price_local: Optional[float] = None
    local_currency_code: Optional[str] = None
    seller_name: Optional[str] = None
    url: Optional[str] = None
    source_domain: Optional[str] = None


class LocalRetailExtraction(BaseModel):
    products: List[LocalRetailItem] = Field(default_factory=list)


class LocalRetailClient:
    """Local-market retail prices from Google Shopping plus marketplace web search."""

    def __init__(
        self,
        *,
        serpapi: SerpApiClient,
        search: WebSearchProvider,
        extractor: StructuredExtractor,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self._serpapi = serpapi
        self._search = search
        self._extractor = extractor
        self._cache = cache if cache is not None else TTLCache()

    async def suggest_marketplaces(self, country_code: str, country_name: str) -> MarketplaceSuggestion:
        key = ("marketplaces", country_code.upper())
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            suggestion = await self._extractor.complete(
                SUGGESTION_PROMPT,
                f"Country: {country_name} ({country_code})",
                MarketplaceSuggestion,
                max_tokens=512,
            )
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("marketplace_suggester", exc, country_code=country_code)
            return MarketplaceSuggestion()
        self._cache.put(key, suggestion)
        return suggestion

    async def _search_marketplaces(
        self,
        query: str,
        domains: List[str],
        country_code: str,
        country_name: str,
        currency_code: str,
    ) -> List[PlatformProduct]:
        if not domains:
            return []
        try:
            response = await self._search.search(
                f"{query} price {country_name}",
                include_domains=domains,
                max_results=8,
                search_depth="basic",
                include_answer=False,
            )
            if not response.results:
                return []
            context = "\n\n---\n\n".join(
                f"[{i}] {hit.title}\nURL: {hit.url}\n{hit.content[:500]}"
                for i, hit in enumerate(response.results, start=1)
            )
            extraction = await self._extractor.complete(
                EXTRACTION_PROMPT,
                f"Target country: {country_name} ({country_code})\nLocal currency: {currency_code}\n\n"
                f"Extract local retail prices:\n\n{context}",
                LocalRetailExtraction,
                max_tokens=2048,
            )
        except Exception as exc:  # noqa: BLE001
            record_provider_failure("local_retail", exc, country_code=country_code)
            return []
        return [
            PlatformProduct(
                platform=Platform.LOCAL_RETAIL,
                title=item.title or "Untitled",
                price_raw=item.price_usd,
                price_formatted=f"${item.price_usd:.2f}" if item.price_usd is not None else "N/A",
                price_local=item.price_local,
                local_currency_code=item.local_currency_code or currency_code,
                seller_name=item.seller_name,
                product_url=item.url,
                source_domain=item.source_domain,
            )
            for item in extraction.products[:10]
        ]

    async def search(
        self,
        query: str,
        country_code: str,
        country_name: str,
        currency_code: str,
    ) -> List[PlatformProduct]:
        suggestion = await self.suggest_marketplaces(country_code, country_name)
        shopping, marketplaces = await asyncio.gather(
            self._serpapi.search_local_shopping(query, country_code, suggestion.language_code or "en"),
            self._search_marketplaces(query, suggestion.domains, country_code, country_name, currency_code),
        )
        return [*shopping, *marketplaces]


__all__ = ["LocalRetailClient", "MarketplaceSuggestion"]

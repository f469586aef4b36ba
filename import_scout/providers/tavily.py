from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from ..config import Settings
from ..interfaces import WebSearchProvider
from ..models import SearchResponse, SearchResult
from ..queries import SearchQuery
from ..telemetry import record_provider_failure
from .http import JsonHttpClient

TAVILY_URL = "https://api.tavily.com/search"


class TavilyClient(WebSearchProvider):
    def __init__(self, settings: Settings, *, http: Optional[JsonHttpClient] = None) -> None:
        self._api_key = settings.tavily_api_key
        self._search_depth = settings.tavily_search_depth
        self._max_results = settings.tavily_max_results
        self._include_answer = settings.tavily_include_answer
        self._http = http or JsonHttpClient("tavily", timeout=settings.timeout_for("tavily"))

    async def search(
        self,
        query: str,
        *,
        include_domains: Optional[List[str]] = None,
        search_depth: Optional[str] = None,
        max_results: Optional[int] = None,
        include_answer: Optional[bool] = None,
    ) -> SearchResponse:
        """Run one search; raises ``ExternalServiceError`` on failure."""
        body: Dict[str, Any] = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": search_depth or self._search_depth,
            "max_results": max_results or self._max_results,
            "include_answer": self._include_answer if include_answer is None else include_answer,
        }
        if include_domains:
            body["include_domains"] = list(include_domains)
        payload = await self._http.post_json(TAVILY_URL, json=body)
        payload = payload if isinstance(payload, dict) else {}
        results = [
            SearchResult(
                title=hit.get("title") or "",
                url=hit.get("url") or "",
                content=hit.get("content") or "",
                score=hit.get("score"),
            )
            for hit in payload.get("results") or []
            if isinstance(hit, dict)
        ]
        return SearchResponse(query=payload.get("query") or query, answer=payload.get("answer"), results=results)

    async def search_many(self, queries: Sequence[SearchQuery]) -> List[SearchResponse]:
        """Fan out ``queries`` concurrently; a failed query yields an empty response."""

        async def _one(query: SearchQuery) -> SearchResponse:
            try:
                return await self.search(query.query, include_domains=query.include_domains)
            except Exception as exc:  # noqa: BLE001
                record_provider_failure("tavily", exc, purpose=query.purpose)
                return SearchResponse(query=query.query)

        return list(await asyncio.gather(*(_one(query) for query in queries)))


__all__ = ["TAVILY_URL", "TavilyClient"]

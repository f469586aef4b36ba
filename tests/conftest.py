from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import httpx
import pytest

from core.telemetry import TelemetryClient
from import_scout.config import Settings
from import_scout.interfaces import SchemaT, StructuredExtractor
from import_scout.models import ProductMetadata
from import_scout.pipeline import ResearchPipeline
from import_scout.storage import InMemorySessionStore


class StubExtractor(StructuredExtractor):
    """Answers ``complete`` from a schema -> response table.

    A response may be a model instance, a dict validated into the schema, a
    callable ``(system, user) -> response`` or an exception to raise.
    """

    def __init__(self, responses: Optional[Dict[type, Any]] = None) -> None:
        self.responses: Dict[type, Any] = dict(responses or {})
        self.calls: List[Tuple[type, str, str]] = []

    def calls_for(self, schema: type) -> int:
        return sum(1 for called, _, _ in self.calls if called is schema)

    async def complete(self, system: str, user: str, schema: Type[SchemaT], *, max_tokens: int = 2048) -> SchemaT:
        self.calls.append((schema, system, user))
        if schema not in self.responses:
            raise RuntimeError(f"no stub response for {schema.__name__}")
        response = self.responses[schema]
        if callable(response) and not isinstance(response, type):
            response = response(system, user)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return schema.model_validate(response)
        return response


def make_metadata(**overrides: Any) -> ProductMetadata:
    payload = {
        "product_name": "Wireless Earbuds",
        "product_category": "Consumer Electronics",
        "hs_code": "851830",
        "regulatory_flags": ["requires_fcc"],
        "import_regulations": ["SUBTEL certification"],
        "impositive_regulations": ["IVA 19%"],
        "market_search_terms": ["audifonos inalambricos", "bluetooth earbuds"],
        "trend_keywords": ["wireless earbuds", "bluetooth earbuds"],
        "normalized_query": "wireless earbuds",
        "extraction_confidence": 0.9,
    }
    payload.update(overrides)
    return ProductMetadata(**payload)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


class FakeProviders:
    """Routes every outbound provider call by host and records the requests."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.rates: Dict[str, float] = {"CLP": 950.0, "EUR": 0.92}
        self.shopping: List[Dict[str, Any]] = [
            {"title": "TWS Earbuds", "extracted_price": 4.0, "source": "Alibaba", "link": "https://a.example/1"}
        ]
        self.amazon: List[Dict[str, Any]] = [
            {"title": "Brand Earbuds", "price": {"raw": "$10.00"}, "asin": "B01", "rating": 4.5}
        ]
        self.tavily_results: List[Dict[str, Any]] = [
            {
                "title": "Aduana Chile - importaciones",
                "url": "https://www.aduana.cl/importaciones",
                "content": "Requirements for importing electronic goods.",
                "score": 0.8,
            }
        ]
        self.geolocation: Optional[Dict[str, Any]] = None
        self.fail_hosts: set = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.fail_hosts:
            return httpx.Response(503, text="unavailable")
        if host == "serpapi.com":
            return self._serpapi(request)
        if host == "api.tavily.com":
            body = json.loads(request.content)
            return json_response({"query": body["query"], "answer": None, "results": self.tavily_results})
        if host == "open.er-api.com":
            return json_response({"result": "success", "rates": {"USD": 1, **self.rates}})
        if host == "ip-api.com":
            return json_response(self.geolocation or {"status": "fail"})
        return httpx.Response(404, text="unknown host")

    def _serpapi(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        engine = params.get("engine")
        if engine == "amazon":
            return json_response({"organic_results": self.amazon})
        if engine == "google_shopping":
            return json_response({"shopping_results": self.shopping})
        if engine == "google_trends":
            return json_response({"search_metadata": {"status": "Success"}, "data_type": params.get("data_type")})
        return json_response({"organic_results": []})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def hosts(self) -> List[str]:
        return [request.url.host for request in self.requests]


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="sk-test", serpapi_api_key="serp-test", tavily_api_key="tvly-test")


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def make_pipeline(settings: Settings, providers: FakeProviders, store: InMemorySessionStore) -> Callable[..., ResearchPipeline]:
    def _build(extractor: StructuredExtractor, telemetry_client: Optional[TelemetryClient] = None) -> ResearchPipeline:
        return ResearchPipeline.from_settings(
            settings,
            store=store,
            extractor=extractor,
            transport=providers.transport(),
            telemetry_client=telemetry_client,
        )

    return _build

import hashlib
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import StubExtractor, json_response
from core.errors import ExternalServiceError
from core.retry import RetryPolicy
from import_scout.cache import TTLCache
from import_scout.config import Settings
from import_scout.models import Platform
from import_scout.providers import (
    AliExpressClient,
    ExchangeRateClient,
    GeolocationClient,
    JsonHttpClient,
    SerpApiClient,
    TavilyClient,
    is_local_address,
    parse_price,
    sign_request,
    translate_keyword,
)
from import_scout.providers.local_retail import LocalRetailClient, LocalRetailExtraction, MarketplaceSuggestion
from import_scout.providers.prices import to_count
from import_scout.providers.translation import TranslationResult
from import_scout.queries import SearchQuery, build_market_queries, build_regulation_queries, build_tax_queries


def _http(name, handler):
    return JsonHttpClient(name, timeout=5, transport=httpx.MockTransport(handler))


def _settings(**overrides):
    payload = {"openai_api_key": "k", "serpapi_api_key": "serp", "tavily_api_key": "tvly"}
    payload.update(overrides)
    return Settings(**payload)


async def _no_sleep(delay):
    return None


def test_parse_price_handles_numbers_and_strings():
    assert parse_price(12) == (12.0, "$12.00")
    assert parse_price("$1,299.99") == (1299.99, "$1,299.99")
    assert parse_price("Contact seller") == (None, "Contact seller")
    assert parse_price(None) == (None, "N/A")
    assert parse_price(True)[0] is None
    assert parse_price(float("nan"))[0] is None
    assert to_count("1,234 ratings") == 1234
    assert to_count("0") is None


@pytest.mark.asyncio
async def test_http_client_maps_status_errors():
    client = _http("serpapi", lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(ExternalServiceError) as excinfo:
        await client.get_json("https://serpapi.com/search.json")
    assert excinfo.value.retryable is True
    assert excinfo.value.details["status_code"] == 502

    client = _http("serpapi", lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ExternalServiceError) as excinfo:
        await client.get_json("https://serpapi.com/search.json")
    assert excinfo.value.retryable is False


@pytest.mark.asyncio
async def test_serpapi_platform_failure_yields_empty_list():
    client = SerpApiClient(_settings(), http=_http("serpapi", lambda request: httpx.Response(500)))
    assert await client.search_platform(Platform.AMAZON, "earbuds") == []


@pytest.mark.asyncio
async def test_serpapi_amazon_mapping_and_credentials():
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return json_response(
            {
                "organic_results": [
                    {"title": "Earbuds", "asin": "B01", "price": {"raw": "$19.99"}, "rating": 4.4, "reviews": "2,311"}
                ]
            }
        )

    client = SerpApiClient(_settings(), http=_http("serpapi", handler))
    products = await client.search_platform(Platform.AMAZON, "earbuds")

    assert seen[0]["api_key"] == "serp"
    assert seen[0]["engine"] == "amazon"
    assert seen[0]["k"] == "earbuds"
    assert products[0].platform == "amazon"
    assert products[0].price_raw == 19.99
    assert products[0].review_count == 2311


@pytest.mark.asyncio
async def test_wholesale_search_dedupes_title_and_price():
    def handler(request):
        return json_response(
            {
                "shopping_results": [
                    {"title": "Bulk earbuds", "extracted_price": 3.2, "source": "Alibaba"},
                    {"title": "Bulk earbuds", "extracted_price": 3.5, "source": "DHgate"},
                ]
            }
        )

    client = SerpApiClient(_settings(), http=_http("serpapi", handler))
    products = await client.search_wholesale("earbuds")

    assert [(p.title, p.price_raw) for p in products] == [("Bulk earbuds", 3.2), ("Bulk earbuds", 3.5)]
    assert all(p.platform == "wholesale" for p in products)
    assert products[0].source_domain == "Alibaba"


@pytest.mark.asyncio
async def test_trends_fan_out_tolerates_a_failed_data_type():
    def handler(request):
        if request.url.params["data_type"] == "GEO_MAP_0":
            return httpx.Response(500)
        return json_response({"data_type": request.url.params["data_type"]})

    client = SerpApiClient(_settings(), http=_http("serpapi", handler))
    raw = await client.get_trends("audifonos", "cl", "es")

    assert raw.geo_map == {}
    assert raw.timeseries["data_type"] == "TIMESERIES"
    assert raw.related_topics["data_type"] == "RELATED_TOPICS"


def test_aliexpress_signature_is_sorted_md5():
    assert sign_request({"b": "2", "a": "1"}, "s") == hashlib.md5(b"sa1b2s").hexdigest().upper()
    first = sign_request({"b": "2", "a": "1"}, "secret")
    second = sign_request({"a": "1", "b": "2"}, "secret")
    assert first == second
    assert first == first.upper()
    assert len(first) == 32


@pytest.mark.asyncio
async def test_aliexpress_without_credentials_makes_no_call():
    calls = []
    client = AliExpressClient(_settings(), http=_http("aliexpress", lambda request: calls.append(request)))
    assert client.configured is False
    assert await client.search("earbuds") == []
    assert calls == []


@pytest.mark.asyncio
async def test_aliexpress_maps_products():
    payload = {
        "aliexpress_affiliate_product_smartmatch_response": {
            "resp_result": {
                "result": {
                    "products": {
                        "product": [
                            {
                                "product_id": 1005,
                                "product_title": "TWS earbuds",
                                "target_app_sale_price": "3.85",
                                "evaluate_rate": "96.5%",
                                "lastest_volume": 1200,
                            }
                        ]
                    }
                }
            }
        }
    }
    requests = []

    def handler(request):
        requests.append(request)
        return json_response(payload)

    client = AliExpressClient(
        _settings(aliexpress_app_key="key", aliexpress_app_secret="secret"),
        http=_http("aliexpress", handler),
        clock=lambda: datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )
    products = await client.search("earbuds")

    params = dict(requests[0].url.params)
    assert params["timestamp"] == "2024-01-02 03:04:05"
    unsigned = {k: v for k, v in params.items() if k != "sign"}
    assert params["sign"] == sign_request(unsigned, "secret")
    assert products[0].price_raw == 3.85
    assert products[0].external_id == "1005"
    assert products[0].sales_volume == "1200"


@pytest.mark.asyncio
async def test_aliexpress_skips_malformed_products():
    payload = {
        "aliexpress_affiliate_product_smartmatch_response": {
            "resp_result": {
                "result": {
                    "products": {
                        "product": [
                            {"product_id": 1, "product_title": "Bad shop", "shop_name": 912345},
                            {"product_id": 2, "product_title": "TWS earbuds", "target_app_sale_price": "3.85"},
                            "not-a-product",
                        ]
                    }
                }
            }
        }
    }
    client = AliExpressClient(
        _settings(aliexpress_app_key="key", aliexpress_app_secret="secret"),
        http=_http("aliexpress", lambda request: json_response(payload)),
    )
    products = await client.search("earbuds")

    assert [p.external_id for p in products] == ["2"]

    payload["aliexpress_affiliate_product_smartmatch_response"]["resp_result"]["result"]["products"] = {
        "product": {"product_id": 3}
    }
    assert await client.search("earbuds") == []


@pytest.mark.asyncio
async def test_tavily_search_many_substitutes_empty_response_on_failure():
    def handler(request):
        body = json.loads(request.content)
        if "fail" in body["query"]:
            return httpx.Response(500)
        assert body["include_domains"] == ["aduana.cl"]
        return json_response({"query": body["query"], "results": [{"title": "t", "url": "https://aduana.cl", "content": "c"}]})

    client = TavilyClient(_settings(), http=_http("tavily", handler))
    responses = await client.search_many(
        [SearchQuery("ok query", "duty", ["aduana.cl"]), SearchQuery("fail query", "labeling", ["aduana.cl"])]
    )

    assert len(responses[0].results) == 1
    assert responses[1].query == "fail query"
    assert responses[1].results == []


def test_is_local_address():
    assert is_local_address("127.0.0.1")
    assert is_local_address("192.168.1.10")
    assert is_local_address("::1")
    assert is_local_address("not-an-ip")
    assert not is_local_address("8.8.8.8")


@pytest.mark.asyncio
async def test_geolocation_skips_local_addresses_and_parses_success():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return json_response({"status": "success", "countryCode": "CL", "country": "Chile", "city": "Santiago"})

    client = GeolocationClient(_settings(), http=_http("geolocation", handler))
    assert await client.locate("10.0.0.1") is None
    assert calls == []

    located = await client.locate("200.1.2.3")
    assert located.country_code == "CL"
    assert located.city == "Santiago"
    assert calls == ["/json/200.1.2.3"]


@pytest.mark.asyncio
async def test_exchange_rate_usd_short_circuits_and_caches():
    calls = []

    def handler(request):
        calls.append(request)
        return json_response({"rates": {"USD": 1, "CLP": 950.5}})

    cache = TTLCache(ttl=3600)
    client = ExchangeRateClient(_settings(), cache=cache, http=_http("exchange_rate", handler), sleep=_no_sleep)

    assert (await client.get_rate("US")).rate == 1.0
    assert calls == []
    assert (await client.get_rate("CL")).rate == 950.5
    assert (await client.get_rate("cl")).rate == 950.5
    assert len(calls) == 1
    assert ("fx", "CLP") in cache


@pytest.mark.asyncio
async def test_exchange_rate_falls_back_to_one_after_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    client = ExchangeRateClient(
        _settings(),
        http=_http("exchange_rate", handler),
        retry_policy=RetryPolicy(attempts=3, base_delay=1.0),
        sleep=_no_sleep,
    )
    rate = await client.get_rate("CL")

    assert rate.currency_code == "CLP"
    assert rate.rate == 1.0
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_translation_short_circuits_english_and_falls_back():
    extractor = StubExtractor({TranslationResult: RuntimeError("model down")})

    english = await translate_keyword("earbuds", "US", extractor)
    assert english.translated == "earbuds"
    assert extractor.calls == []

    fallback = await translate_keyword("earbuds", "CL", extractor)
    assert fallback.translated == "earbuds"
    assert fallback.language_code == "es"

    extractor.responses[TranslationResult] = TranslationResult(
        translated_keyword="audifonos inalambricos", language_code="es", language_name="Spanish"
    )
    translated = await translate_keyword("wireless earbuds", "CL", extractor)
    assert translated.translated == "audifonos inalambricos"


@pytest.mark.asyncio
async def test_local_retail_combines_shopping_and_marketplaces():
    def serp_handler(request):
        assert request.url.params["gl"] == "cl"
        assert request.url.params["hl"] == "es"
        return json_response({"shopping_results": [{"title": "Audifonos", "extracted_price": 15.0, "source": "Falabella"}]})

    def tavily_handler(request):
        body = json.loads(request.content)
        assert body["include_domains"] == ["falabella.com", "ripley.cl"]
        return json_response({"results": [{"title": "Audifonos BT", "url": "https://ripley.cl/x", "content": "$12.990"}]})

    extractor = StubExtractor(
        {
            MarketplaceSuggestion: MarketplaceSuggestion(domains=["falabella.com", "ripley.cl"], language_code="es"),
            LocalRetailExtraction: {
                "products": [{"title": "Audifonos BT", "price_local": 12990, "local_currency_code": "CLP", "url": "https://ripley.cl/x"}]
            },
        }
    )
    cache = TTLCache()
    client = LocalRetailClient(
        serpapi=SerpApiClient(_settings(), http=_http("serpapi", serp_handler)),
        search=TavilyClient(_settings(), http=_http("tavily", tavily_handler)),
        extractor=extractor,
        cache=cache,
    )
    products = await client.search("audifonos", "CL", "Chile", "CLP")

    assert [p.platform for p in products] == ["local_retail", "local_retail"]
    assert products[0].source_domain == "Falabella"
    assert products[1].price_raw is None
    assert products[1].price_local == 12990

    await client.search("audifonos", "CL", "Chile", "CLP")
    assert extractor.calls_for(MarketplaceSuggestion) == 1


def test_query_builders_respect_limits_and_domains():
    regulation = build_regulation_queries("851830", "CL", ["requires_fcc"], [], ["IVA 19%"])
    assert len(regulation) == 6
    assert all(q.include_domains == ["aduana.cl"] for q in regulation)
    assert len(build_regulation_queries("851830", "CL", [], [], [])) == 5

    tax = build_tax_queries("851830", "Wireless Earbuds", "CL", ["IVA 19%"])
    assert len(tax) == 5
    assert tax[3].include_domains is None
    assert tax[0].include_domains == ["aduana.cl", "sii.cl"]

    market = build_market_queries(["audifonos"], "CL")
    assert len(market) == 5
    assert all("Chile" in q.query for q in market)

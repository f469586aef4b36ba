import pytest

from conftest import StubExtractor, make_metadata
from core.errors import RateLimitError, ValidationError
from import_scout.models import (
    OpportunityContext,
    OpportunityReport,
    Platform,
    PlatformProduct,
    PlatformResults,
    PriceAnalysis,
    PricingContext,
    SearchResponse,
    SearchResult,
    TrendsRawData,
)
from import_scout.synthesis.market import MarketExtraction, synthesize_market_report
from import_scout.synthesis.metadata import normalise_hs_code
from import_scout.synthesis.opportunity import ENGINE_FAILURE_FLAG, NEUTRAL_SCORE, score_opportunity
from import_scout.synthesis.prices import NO_RESULTS_SUMMARY, PriceNarrative, compute_price_metrics, synthesize_prices
from import_scout.synthesis.regulation import RegulationExtraction, synthesize_regulation_report
from import_scout.synthesis.sources import fallback_sources
from import_scout.synthesis.tax import DEGRADED_TAX_SUMMARY, TaxExtraction, compute_landed_cost, synthesize_impositive_report
from import_scout.synthesis.trends import TrendExtraction, synthesize_trend_report


def _product(platform, price=None, price_local=None):
    return PlatformProduct(platform=platform, title=f"{platform.value} item", price_raw=price, price_local=price_local)


def _responses():
    return [
        SearchResponse(
            query="q",
            results=[
                SearchResult(
                    title=f"Result {i}",
                    url=f"https://www.aduana.cl/page/{i}",
                    content="x" * 300,
                    score=0.5,
                )
                for i in range(7)
            ],
        )
    ]


def test_price_metrics_margins():
    platforms = PlatformResults(
        aliexpress=[_product(Platform.ALIEXPRESS, 4.0)],
        wholesale=[_product(Platform.WHOLESALE, 5.5), _product(Platform.WHOLESALE, 0)],
        amazon=[_product(Platform.AMAZON, 10.0)],
        ebay=[_product(Platform.EBAY, 7.0)],
        local_retail=[_product(Platform.LOCAL_RETAIL, 8.0), _product(Platform.LOCAL_RETAIL, price_local=7600.0)],
    )
    metrics = compute_price_metrics(platforms, 950.0)

    assert metrics["wholesale_floor"] == 4.0
    assert metrics["retail_ceiling"] == 10.0
    assert metrics["local_retail_median"] == 8.0
    assert metrics["gross_margin_pct_max"] == 60.0
    assert metrics["gross_margin_pct_min"] == 50.0
    assert metrics["wholesale_floor_local"] == 3800.0
    assert metrics["floor_platform"] == "aliexpress"


@pytest.mark.asyncio
async def test_synthesize_prices_without_listings_skips_the_model():
    extractor = StubExtractor()
    analysis = await synthesize_prices(PlatformResults(), "CLP", 950.0, extractor)

    assert analysis.summary == NO_RESULTS_SUMMARY
    assert analysis.wholesale_floor is None
    assert analysis.exchange_rate == 950.0
    assert extractor.calls == []


@pytest.mark.asyncio
async def test_synthesize_prices_keeps_computed_numbers_when_the_model_fails():
    platforms = PlatformResults(
        wholesale=[_product(Platform.WHOLESALE, 4.0)],
        amazon=[_product(Platform.AMAZON, 10.0)],
    )
    analysis = await synthesize_prices(platforms, "USD", 1.0, StubExtractor({PriceNarrative: RateLimitError("429")}))

    assert analysis.gross_margin_pct_max == 60.0
    assert analysis.best_source_platform == "wholesale"
    assert analysis.summary


def test_landed_cost_compounds_vat_on_duty():
    breakdown = compute_landed_cost(
        4.50,
        shipping_per_unit_usd=0.90,
        duty_pct=6,
        vat_pct=19,
        other_fees_usd=None,
        exchange_rate=950.0,
        local_retail_price_usd=12.0,
    )
    assert breakdown.cif_value_usd == pytest.approx(5.40, abs=0.01)
    assert breakdown.duty_amount_usd == pytest.approx(0.324, abs=0.001)
    assert breakdown.vat_amount_usd == pytest.approx(1.0876, abs=0.001)
    assert breakdown.total_landed_cost_usd == pytest.approx(6.8116, abs=0.01)
    assert breakdown.total_landed_cost_local == pytest.approx(6.8116 * 950, abs=1)
    assert breakdown.net_margin_pct == pytest.approx(43.24, abs=0.01)


def test_landed_cost_without_wholesale_price_is_empty():
    breakdown = compute_landed_cost(
        None,
        shipping_per_unit_usd=1.0,
        duty_pct=6,
        vat_pct=19,
        other_fees_usd=None,
        exchange_rate=1.0,
        local_retail_price_usd=9.0,
    )
    assert breakdown.total_landed_cost_usd is None
    assert breakdown.local_retail_price_usd == 9.0


@pytest.mark.asyncio
async def test_tax_report_uses_extracted_rates():
    extraction = TaxExtraction(
        import_duty_pct=6,
        vat_rate_pct=19,
        estimated_shipping_per_unit_usd=0.9,
        tax_summary="Duty plus IVA.",
        sources=[{"title": "SII", "url": "https://www.sii.cl/iva", "snippet": "IVA 19%"}],
    )
    pricing = PricingContext(wholesale_floor_usd=4.5, local_retail_median_usd=12.0, exchange_rate=950.0, local_currency_code="CLP")
    report = await synthesize_impositive_report(
        "851830", "CL", "Wireless Earbuds", pricing, _responses(), StubExtractor({TaxExtraction: extraction})
    )

    assert report.landed_cost.total_landed_cost_usd == pytest.approx(6.8116, abs=0.01)
    assert report.sources[0].domain == "www.sii.cl"


@pytest.mark.asyncio
async def test_tax_report_degrades_to_raw_sources():
    pricing = PricingContext(wholesale_floor_usd=4.5, local_retail_median_usd=12.0)
    report = await synthesize_impositive_report(
        "851830", "CL", "Wireless Earbuds", pricing, _responses(), StubExtractor({TaxExtraction: ValidationError("bad")})
    )

    assert report.tax_summary == DEGRADED_TAX_SUMMARY
    assert report.import_duty_pct is None
    assert report.landed_cost.total_landed_cost_usd is None
    assert report.landed_cost.wholesale_unit_price_usd == 4.5
    assert len(report.sources) == 5
    assert all(len(source.snippet) == 200 for source in report.sources)


@pytest.mark.asyncio
async def test_regulation_report_degrades_and_sorts_steps():
    failed = await synthesize_regulation_report(
        "851830", "CL", _responses(), StubExtractor({RegulationExtraction: RateLimitError("429")})
    )
    assert failed.duty_rate_percent is None
    assert failed.required_certifications == []
    assert [s.url for s in failed.sources] == [r.url for r in _responses()[0].results[:5]]

    extraction = RegulationExtraction(
        duty_rate_percent=6,
        import_steps=[
            {"step_number": 2, "title": "Clear customs", "description": "File the DIN"},
            {"step_number": 1, "title": "Certify", "description": "SEC certification", "is_critical": True},
        ],
        summary="Certification is the main hurdle.",
    )
    report = await synthesize_regulation_report(
        "851830", "CL", _responses(), StubExtractor({RegulationExtraction: extraction})
    )
    assert [step.step_number for step in report.import_steps] == [1, 2]


@pytest.mark.asyncio
async def test_trend_report_without_payloads_is_degraded_without_model_call():
    extractor = StubExtractor()
    report = await synthesize_trend_report("earbuds", "CL", TrendsRawData(), extractor)

    assert report.trend_score is None
    assert report.trend_direction is None
    assert report.summary
    assert extractor.calls == []


@pytest.mark.asyncio
async def test_trend_report_from_extraction():
    raw = TrendsRawData(timeseries={"interest_over_time": {"timeline_data": []}})
    extraction = TrendExtraction(trend_score=71, trend_direction="up", is_seasonal=True, peak_month="November")
    report = await synthesize_trend_report("earbuds", "CL", raw, StubExtractor({TrendExtraction: extraction}))

    assert report.trend_score == 71
    assert report.trend_direction == "up"
    assert report.peak_month == "November"


@pytest.mark.asyncio
async def test_market_report_truncates_and_degrades():
    extraction = MarketExtraction(
        competition_level="high",
        top_competitors=[f"Brand {i}" for i in range(14)],
        positioning_tip="Compete on battery life.",
        summary="Crowded market.",
    )
    report = await synthesize_market_report("CL", _responses(), StubExtractor({MarketExtraction: extraction}))
    assert len(report.top_competitors) == 10
    assert report.competition_level == "high"

    degraded = await synthesize_market_report("CL", _responses(), StubExtractor())
    assert degraded.competition_level is None
    assert degraded.top_competitors == []
    assert len(degraded.sources) == 5


def test_fallback_sources_maps_raw_hits():
    sources = fallback_sources(_responses()[0].results, limit=2)
    assert [s.domain for s in sources] == ["www.aduana.cl", "www.aduana.cl"]
    assert sources[0].relevance_score == 0.5


def test_normalise_hs_code():
    assert normalise_hs_code("8518.30.00") == "851830"
    assert normalise_hs_code("85") == "000000"
    assert normalise_hs_code(None) == "000000"


@pytest.mark.asyncio
async def test_opportunity_falls_back_to_neutral_score():
    context = OpportunityContext(
        session_id="s-1",
        product_metadata=make_metadata(),
        platforms=PlatformResults(),
        price_analysis=PriceAnalysis(gross_margin_pct_min=35.0, best_source_platform="aliexpress", summary="ok"),
        local_currency_code="CLP",
        exchange_rate=950.0,
    )
    report = await score_opportunity(context, StubExtractor({OpportunityReport: RateLimitError("429")}))

    assert report.opportunity_score == NEUTRAL_SCORE
    assert report.estimated_margin_pct == 35.0
    assert report.best_source_platform == "aliexpress"
    assert report.risk_flags == [ENGINE_FAILURE_FLAG]

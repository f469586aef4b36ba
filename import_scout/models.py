"""Pydantic models for every record the research pipeline produces or stores."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    ALIEXPRESS = "aliexpress"
    WHOLESALE = "wholesale"
    AMAZON = "amazon"
    EBAY = "ebay"
    WALMART = "walmart"
    GOOGLE_SHOPPING = "google_shopping"
    LOCAL_RETAIL = "local_retail"


WHOLESALE_PLATFORMS = (Platform.ALIEXPRESS, Platform.WHOLESALE)
RETAIL_PLATFORMS = (Platform.AMAZON, Platform.EBAY, Platform.WALMART, Platform.GOOGLE_SHOPPING)


class StageTag(str, Enum):
    """Keys distinguishing facets within a session's stored data."""

    PRODUCT_METADATA = "product_metadata"
    SOURCING = "sourcing"
    TRENDS = "trends"
    REGULATION = "regulation"
    IMPOSITIVE = "impositive"
    MARKET = "market"


TrendDirection = Literal["strong_up", "up", "flat", "down", "strong_down"]
CompetitionLevel = Literal["low", "medium", "high", "very_high"]


class _Record(BaseModel):
    model_config = ConfigDict(use_enum_values=True)


# --- session ------------------------------------------------------------


class ResearchSession(_Record):
    session_id: str
    raw_query: str
    country_code: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Geolocation(_Record):
    country_code: str
    country_name: str
    city: Optional[str] = None
    timezone: Optional[str] = None


class ProductMetadata(_Record):
    id: Optional[str] = None
    session_id: Optional[str] = None
    product_name: str
    product_category: str
    hs_code: str = Field(description="Most likely 6-digit HS code, '000000' when unknown")
    regulatory_flags: List[str] = Field(default_factory=list)
    import_regulations: List[str] = Field(default_factory=list)
    impositive_regulations: List[str] = Field(default_factory=list)
    market_search_terms: List[str] = Field(default_factory=list)
    trend_keywords: List[str] = Field(min_length=1, max_length=5)
    normalized_query: str
    extraction_confidence: Optional[float] = Field(default=None, ge=0, le=1)


class SessionInit(_Record):
    session_id: str
    geolocation: Geolocation
    product_metadata: ProductMetadata


# --- sourcing -----------------------------------------------------------


class PlatformProduct(_Record):
    platform: Platform
    external_id: Optional[str] = None
    title: str
    price_raw: Optional[float] = None
    price_formatted: str = "N/A"
    currency: str = "USD"
    price_local: Optional[float] = None
    local_currency_code: Optional[str] = None
    source_domain: Optional[str] = None
    moq: Optional[float] = None
    unit: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    seller_name: Optional[str] = None
    is_verified: Optional[bool] = None
    product_url: Optional[str] = None
    image_url: Optional[str] = None
    condition: Optional[str] = None
    sales_volume: Optional[str] = None


class PlatformResults(_Record):
    aliexpress: List[PlatformProduct] = Field(default_factory=list)
    wholesale: List[PlatformProduct] = Field(default_factory=list)
    amazon: List[PlatformProduct] = Field(default_factory=list)
    ebay: List[PlatformProduct] = Field(default_factory=list)
    walmart: List[PlatformProduct] = Field(default_factory=list)
    google_shopping: List[PlatformProduct] = Field(default_factory=list)
    local_retail: List[PlatformProduct] = Field(default_factory=list)

    def for_platform(self, platform: Platform | str) -> List[PlatformProduct]:
        return getattr(self, Platform(platform).value)

    def total(self) -> int:
        return sum(len(self.for_platform(p)) for p in Platform)


class PriceAnalysis(_Record):
    wholesale_floor: Optional[float] = None
    wholesale_floor_local: Optional[float] = None
    retail_ceiling: Optional[float] = None
    retail_ceiling_local: Optional[float] = None
    local_retail_median: Optional[float] = None
    local_retail_median_local: Optional[float] = None
    currency: str = "USD"
    local_currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    gross_margin_pct_min: Optional[float] = None
    gross_margin_pct_max: Optional[float] = None
    best_source_platform: Optional[Platform] = None
    arbitrage_signal: Optional[str] = None
    summary: str


class SourcingResult(_Record):
    platforms: PlatformResults
    price_analysis: PriceAnalysis
    local_currency_code: str
    exchange_rate: float


# --- raw search ---------------------------------------------------------


class SearchResult(_Record):
    title: str = ""
    url: str = ""
    content: str = ""
    score: Optional[float] = None


class SearchResponse(_Record):
    query: str
    answer: Optional[str] = None
    results: List[SearchResult] = Field(default_factory=list)


class Source(_Record):
    title: str
    url: str
    domain: str
    snippet: str
    relevance_score: Optional[float] = None


# --- trends -------------------------------------------------------------


class TrendsRawData(_Record):
    timeseries: Dict[str, Any] = Field(default_factory=dict)
    geo_map: Dict[str, Any] = Field(default_factory=dict)
    related_queries: Dict[str, Any] = Field(default_factory=dict)
    related_topics: Dict[str, Any] = Field(default_factory=dict)


class TrendTimeseriesPoint(_Record):
    week_start: str
    interest_value: float


class TrendRegion(_Record):
    region_name: str
    region_code: Optional[str] = None
    interest_value: float


class TrendQuery(_Record):
    query_text: str
    type: Literal["rising", "top"]
    value: str


class TrendTopic(_Record):
    topic_title: str
    topic_type: str
    type: Literal["rising", "top"]
    value: str


class TrendReport(_Record):
    keyword: str
    geo: str
    date_range: str = "today 12-m"
    trend_score: Optional[float] = Field(default=None, ge=0, le=100)
    trend_direction: Optional[TrendDirection] = None
    peak_month: Optional[str] = None
    is_seasonal: bool = False
    timeseries: List[TrendTimeseriesPoint] = Field(default_factory=list)
    regions: List[TrendRegion] = Field(default_factory=list)
    rising_queries: List[TrendQuery] = Field(default_factory=list)
    rising_topics: List[TrendTopic] = Field(default_factory=list)
    summary: Optional[str] = None
    original_keyword: Optional[str] = None
    translated_keyword: Optional[str] = None
    language_code: str = "en"
    language_name: str = "English"


# --- regulation & tax ---------------------------------------------------


class ImportStep(_Record):
    step_number: int
    title: str
    description: str
    estimated_time: Optional[str] = None
    estimated_cost: Optional[str] = None
    is_critical: bool = False


class RegulationReport(_Record):
    country_code: str
    hs_code: str
    duty_rate_percent: Optional[float] = None
    required_certifications: List[str] = Field(default_factory=list)
    prohibited_variants: List[str] = Field(default_factory=list)
    labeling_requirements: List[str] = Field(default_factory=list)
    quota_info: Optional[str] = None
    licensing_info: Optional[str] = None
    import_steps: List[ImportStep] = Field(default_factory=list)
    summary: str
    sources: List[Source] = Field(default_factory=list)


class TaxLineItem(_Record):
    name: str
    rate_pct: Optional[float] = None
    description: str = ""
    applies_to: str = ""


class LandedCostBreakdown(_Record):
    wholesale_unit_price_usd: Optional[float] = None
    estimated_shipping_per_unit_usd: Optional[float] = None
    cif_value_usd: Optional[float] = None
    duty_amount_usd: Optional[float] = None
    vat_amount_usd: Optional[float] = None
    other_fees_usd: Optional[float] = None
    total_landed_cost_usd: Optional[float] = None
    total_landed_cost_local: Optional[float] = None
    effective_tax_rate_pct: Optional[float] = None
    net_margin_pct: Optional[float] = None
    local_retail_price_usd: Optional[float] = None


class PricingContext(_Record):
    wholesale_floor_usd: Optional[float] = None
    local_retail_median_usd: Optional[float] = None
    exchange_rate: float = 1.0
    local_currency_code: str = "USD"
    best_source_platform: Optional[str] = None


class ImpositiveReport(_Record):
    country_code: str
    hs_code: str
    import_duty_pct: Optional[float] = None
    vat_rate_pct: Optional[float] = None
    additional_taxes: List[TaxLineItem] = Field(default_factory=list)
    total_tax_burden_pct: Optional[float] = None
    landed_cost: LandedCostBreakdown = Field(default_factory=LandedCostBreakdown)
    tax_summary: str
    importer_tips: List[str] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)


# --- market -------------------------------------------------------------


class MarketReport(_Record):
    country_code: str
    competition_level: Optional[CompetitionLevel] = None
    top_competitors: List[str] = Field(default_factory=list, max_length=10)
    top_channels: List[str] = Field(default_factory=list, max_length=10)
    positioning_tip: str
    summary: str
    sources: List[Source] = Field(default_factory=list)


# --- opportunity --------------------------------------------------------


class OpportunityContext(_Record):
    session_id: str
    product_metadata: ProductMetadata
    platforms: PlatformResults
    price_analysis: PriceAnalysis
    trend_report: Optional[TrendReport] = None
    regulation_report: Optional[RegulationReport] = None
    impositive_report: Optional[ImpositiveReport] = None
    market_report: Optional[MarketReport] = None
    local_currency_code: str
    exchange_rate: float


class OpportunityReport(_Record):
    opportunity_score: float = Field(ge=0, le=100)
    estimated_margin_pct: Optional[float] = None
    best_source_platform: Optional[Platform] = None
    best_launch_month: Optional[str] = None
    keyword_gaps: List[str] = Field(default_factory=list)
    variant_suggestions: List[str] = Field(default_factory=list)
    risk_flags: List[str] = Field(default_factory=list)
    overall_verdict: str


class StoredAssessment(_Record):
    id: str
    session_id: str
    context_json: str
    report_json: str
    created_at: int

    def report(self) -> OpportunityReport:
        return OpportunityReport.model_validate_json(self.report_json)


__all__ = [
    "CompetitionLevel",
    "Geolocation",
    "ImpositiveReport",
    "ImportStep",
    "LandedCostBreakdown",
    "MarketReport",
    "OpportunityContext",
    "OpportunityReport",
    "Platform",
    "PlatformProduct",
    "PlatformResults",
    "PriceAnalysis",
    "PricingContext",
    "ProductMetadata",
    "RETAIL_PLATFORMS",
    "RegulationReport",
    "ResearchSession",
    "SearchResponse",
    "SearchResult",
    "SessionInit",
    "Source",
    "SourcingResult",
    "StageTag",
    "StoredAssessment",
    "TaxLineItem",
    "TrendDirection",
    "TrendQuery",
    "TrendRegion",
    "TrendReport",
    "TrendTimeseriesPoint",
    "TrendTopic",
    "TrendsRawData",
    "WHOLESALE_PLATFORMS",
]

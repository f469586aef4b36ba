"""Facet synthesizers: raw provider output in, validated report out."""

from .metadata import extract_product_metadata
from .market import synthesize_market_report
from .opportunity import score_opportunity
from .prices import compute_price_metrics, synthesize_prices
from .regulation import synthesize_regulation_report
from .sources import fallback_sources
from .tax import compute_landed_cost, synthesize_impositive_report
from .trends import synthesize_trend_report

__all__ = [
    "compute_landed_cost",
    "compute_price_metrics",
    "extract_product_metadata",
    "fallback_sources",
    "score_opportunity",
    "synthesize_impositive_report",
    "synthesize_market_report",
    "synthesize_prices",
    "synthesize_regulation_report",
    "synthesize_trend_report",
]

"""Web-search query builders for the regulation, tax and market stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .reference import country_name, customs_domains, tax_domains

MAX_REGULATION_QUERIES = 6
MAX_TAX_QUERIES = 5
MAX_MARKET_QUERIES = 5


@dataclass(frozen=True)
class SearchQuery:
    query: str
    purpose: str
    include_domains: Optional[List[str]] = field(default=None)


def build_regulation_queries(
    hs_code: str,
    country_code: str,
    regulatory_flags: Sequence[str],
    import_regulations: Sequence[str],
    impositive_regulations: Sequence[str],
) -> List[SearchQuery]:
    """Five compliance queries scoped to customs domains, plus one when tax tags exist."""
    name = country_name(country_code)
    domains = customs_domains(country_code)
    certifications = " ".join(regulatory_flags) or "standards"
    restrictions = " ".join(import_regulations) or "banned"

    queries = [
        SearchQuery(f"HS code {hs_code} import duty tariff rate {name}", "duty_rate", domains),
        SearchQuery(f"HS {hs_code} import certification requirements {certifications} {name}", "certifications", domains),
        SearchQuery(f"HS {hs_code} prohibited restricted import {restrictions} {name}", "prohibitions", domains),
        SearchQuery(f"HS {hs_code} labeling marking packaging requirements import {name}", "labeling", domains),
        SearchQuery(f"HS {hs_code} import license permit quota {name}", "licensing", domains),
    ]
    if impositive_regulations:
        taxes = " ".join(impositive_regulations)
        queries.append(SearchQuery(f"HS {hs_code} import {taxes} customs duties {name}", "impositive", domains))
    return queries[:MAX_REGULATION_QUERIES]


def build_tax_queries(
    hs_code: str,
    product_name: str,
    country_code: str,
    impositive_regulations: Sequence[str],
) -> List[SearchQuery]:
    name = country_name(country_code)
    domains = tax_domains(country_code) or None

    queries = [
        SearchQuery(f"HS code {hs_code} import tariff duty rate percentage {name}", "duty_rate", domains),
        SearchQuery(f"{name} import VAT sales tax rate {product_name} consumer goods", "vat_rate", domains),
        SearchQuery(
            f"{name} import additional fees customs processing surcharge anti-dumping {hs_code}",
            "additional_fees",
            domains,
        ),
        SearchQuery(
            f"how to calculate total landed cost importing {product_name} to {name} shipping duty tax",
            "landed_cost_guide",
        ),
    ]
    if impositive_regulations:
        taxes = " ".join(list(impositive_regulations)[:3])
        queries.append(SearchQuery(f"{name} import {taxes} rate {hs_code} {product_name}", "specific_impositive", domains))
    return queries[:MAX_TAX_QUERIES]


def build_market_queries(market_terms: Sequence[str], country_code: str) -> List[SearchQuery]:
    name = country_name(country_code)
    terms = " ".join(market_terms)
    return [
        SearchQuery(f"top competitors {terms} market {name}", "competitors"),
        SearchQuery(f"best e-commerce channels to sell {terms} {name}", "channels"),
        SearchQuery(f"consumer demand {terms} market size growth {name}", "demand"),
        SearchQuery(f"{terms} product positioning strategy {name} market", "positioning"),
        SearchQuery(f"{terms} market trends competitive landscape {name}", "landscape"),
    ][:MAX_MARKET_QUERIES]


__all__ = [
    "MAX_MARKET_QUERIES",
    "MAX_REGULATION_QUERIES",
    "MAX_TAX_QUERIES",
    "SearchQuery",
    "build_market_queries",
    "build_regulation_queries",
    "build_tax_queries",
]

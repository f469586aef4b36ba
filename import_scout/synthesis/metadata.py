from __future__ import annotations

import re
from typing import Optional

from ..interfaces import StructuredExtractor
from ..models import ProductMetadata

UNKNOWN_HS_CODE = "000000"

METADATA_PROMPT = """You are a wholesale product research assistant. Given a raw search query and optionally a destination country, extract structured product metadata for downstream sourcing, trends, regulation and market research.

Guidelines:
- hs_code is the most likely 6-digit HS code. Use "000000" if truly unknown.
- regulatory_flags: product certifications and standards (FCC, CE, RoHS, FDA...).
- import_regulations: customs procedures, import permits, licensing, prohibited or restricted items, country-of-origin rules.
- impositive_regulations: tariff rates, duty classifications, VAT/GST applicability, excise duties, preferential agreements.
- market_search_terms: short terms describing the product category for competitor and channel research.
- trend_keywords: 1-5 terms ordered from most specific to broadest.
- normalized_query: clean lowercase search string for product search APIs, without special characters or country references.
- extraction_confidence: 0.5 for vague queries, 0.9+ for specific products."""


def normalise_hs_code(raw: Optional[str]) -> str:
    digits = re.sub(r"\D", "", raw or "")
    return digits[:6] if len(digits) >= 6 else UNKNOWN_HS_CODE


async def extract_product_metadata(
    raw_query: str,
    country_code: Optional[str],
    extractor: StructuredExtractor,
) -> ProductMetadata:
    """Extract product metadata; extraction failures propagate to the caller."""
    country = (
        f"The user is located in {country_code}. Consider local regulations and market context for this country."
        if country_code
        else ""
    )
    user = f'Raw search query: "{raw_query}"\n{country}\n\nExtract the structured product metadata.'
    metadata = await extractor.complete(METADATA_PROMPT, user, ProductMetadata)
    return metadata.model_copy(
        update={
            "hs_code": normalise_hs_code(metadata.hs_code),
            "normalized_query": metadata.normalized_query.strip() or raw_query.strip().lower(),
        }
    )


__all__ = ["UNKNOWN_HS_CODE", "extract_product_metadata", "normalise_hs_code"]

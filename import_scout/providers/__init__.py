"""Adapters for the external data sources the pipeline fans out to."""

from .aliexpress import AliExpressClient, sign_request
from .exchange import ExchangeRate, ExchangeRateClient
from .geolocation import GeolocationClient, is_local_address
from .http import JsonHttpClient
from .local_retail import LocalRetailClient
from .prices import parse_price
from .serpapi import SerpApiClient
from .tavily import TavilyClient
from .translation import TranslatedKeyword, translate_keyword

__all__ = [
    "AliExpressClient",
    "ExchangeRate",
    "ExchangeRateClient",
    "GeolocationClient",
    "JsonHttpClient",
    "LocalRetailClient",
    "SerpApiClient",
    "TavilyClient",
    "TranslatedKeyword",
    "is_local_address",
    "parse_price",
    "sign_request",
    "translate_keyword",
]

"""Helpers shared by every synthesizer: search-result flattening and fallback sources."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..models import SearchResponse, SearchResult, Source

SNIPPET_LENGTH = 200


class CitedSource(BaseModel):
    """Source as cited by the model; the domain is filled in from the URL when missing."""

    title: str
    url: str
    domain: Optional[str] = None
    snippet: str = ""
    relevance_score: Optional[float] = Field(default=None, ge=0, le=1)


def domain_of(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def flatten_results(responses: Sequence[SearchResponse]) -> List[SearchResult]:
    return [result for response in responses for result in response.results]


def fallback_sources(results: Iterable[SearchResult], limit: int = 5) -> List[Source]:
    """Mechanically map raw search hits to ``Source`` records, no model involved."""
    sources: List[Source] = []
    for result in results:
        if len(sources) >= limit:
            break
        sources.append(
            Source(
                title=result.title,
                url=result.url,
                domain=domain_of(result.url),
                snippet=result.content[:SNIPPET_LENGTH],
                relevance_score=result.score,
            )
        )
    return sources


def normalise_sources(cited: Iterable[CitedSource]) -> List[Source]:
    return [
        Source(
            title=item.title,
            url=item.url,
            domain=item.domain or domain_of(item.url),
            snippet=item.snippet,
            relevance_score=item.relevance_score,
        )
        for item in cited
    ]


def render_search_context(responses: Sequence[SearchResponse]) -> str:
    """Prompt block with the search engine's answers followed by every hit."""
    answers = "\n\n".join(response.answer for response in responses if response.answer)
    hits = "\n---\n".join(
        f"### Source {index}: {result.title}\nURL: {result.url}\nContent: {result.content}"
        for index, result in enumerate(flatten_results(responses), start=1)
    )
    return (
        "## Search engine summaries\n"
        f"{answers or 'No summaries available.'}\n\n"
        "## Web search results\n"
        f"{hits or 'No results.'}"
    )


__all__ = [
    "CitedSource",
    "SNIPPET_LENGTH",
    "domain_of",
    "fallback_sources",
    "flatten_results",
    "normalise_sources",
    "render_search_context",
]

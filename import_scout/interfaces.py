from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from .models import (
    OpportunityReport,
    ResearchSession,
    SearchResponse,
    StoredAssessment,
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class StructuredExtractor(abc.ABC):
    """Sends a prompt pair to a language model and returns a validated schema instance."""

    @abc.abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        schema: Type[SchemaT],
        *,
        max_tokens: int = 2048,
    ) -> SchemaT:
        ...


class WebSearchProvider(abc.ABC):
    """Web search returning raw hits (title/url/content/score)."""

    @abc.abstractmethod
    async def search(
        self,
        query: str,
        *,
        include_domains: Optional[List[str]] = None,
        search_depth: Optional[str] = None,
        max_results: Optional[int] = None,
        include_answer: Optional[bool] = None,
    ) -> SearchResponse:
        ...


class SessionStore(abc.ABC):
    """Per-session stage data plus one terminal assessment per session."""

    @abc.abstractmethod
    async def create_session(self, session: ResearchSession) -> None:
        ...

    @abc.abstractmethod
    async def get_session(self, session_id: str) -> Optional[ResearchSession]:
        ...

    @abc.abstractmethod
    async def put(self, session_id: str, stage: str, value: Dict[str, Any]) -> None:
        """Upsert by (session_id, stage); a second write overwrites the first."""

    @abc.abstractmethod
    async def get(self, session_id: str, stage: str) -> Optional[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def get_all(self, session_id: str) -> Dict[str, Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def get_assessment(self, session_id: str) -> Optional[StoredAssessment]:
        ...

    @abc.abstractmethod
    async def save_assessment(self, session_id: str, context_json: str, report_json: str) -> None:
        ...

    async def get_report(self, session_id: str) -> Optional[OpportunityReport]:
        stored = await self.get_assessment(session_id)
        return stored.report() if stored else None

    async def close(self) -> None:
        return None


__all__ = [
    "SessionStore",
    "StructuredExtractor",
    "WebSearchProvider",
]

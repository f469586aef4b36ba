from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from core.errors import ExternalServiceError, RateLimitError, ValidationError
from core.retry import RetryPolicy, retry_async

from .config import Settings
from .interfaces import SchemaT, StructuredExtractor
from .telemetry import LLM_REQUESTS

logger = structlog.get_logger(__name__)

_OVERLOADED_STATUS = 529


class StructuredExtractionClient(StructuredExtractor):
    """The single place a generative model is called.

    Each ``complete`` call is one chat completion constrained to the JSON schema
    of the target pydantic model. Rate limits, overload and connection failures
    are retried (1s, 2s); schema violations are not.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model
        self._policy = retry_policy or RetryPolicy(attempts=3, base_delay=1.0, backoff_factor=2.0)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "StructuredExtractionClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            **kwargs,
        )

    async def complete(
        self,
        system: str,
        user: str,
        schema: Type[SchemaT],
        *,
        max_tokens: int = 2048,
    ) -> SchemaT:
        try:
            result = await retry_async(
                self._complete_once,
                system,
                user,
                schema,
                max_tokens,
                policy=self._policy,
                sleep=self._sleep,
            )
        except Exception:
            LLM_REQUESTS.labels(outcome="failure").inc()
            raise
        LLM_REQUESTS.labels(outcome="success").inc()
        return result

    async def _complete_once(self, system: str, user: str, schema: Type[SchemaT], max_tokens: int) -> SchemaT:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=0,
                max_tokens=max_tokens,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": schema.__name__,
                        "schema": schema.model_json_schema(),
                        "strict": False,
                    },
                },
            )
        except openai.RateLimitError as exc:
            raise RateLimitError("Model provider rate limit", schema=schema.__name__) from exc
        except openai.APIConnectionError as exc:
            # APITimeoutError is a subclass
            raise ExternalServiceError(f"Model provider unreachable: {exc}", schema=schema.__name__) from exc
        except openai.APIStatusError as exc:
            retryable = exc.status_code >= 500 or exc.status_code == _OVERLOADED_STATUS
            raise ExternalServiceError(
                f"Model provider returned {exc.status_code}",
                retryable=retryable,
                status_code=exc.status_code,
                schema=schema.__name__,
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValidationError("Model returned no structured content", schema=schema.__name__)
        try:
            return schema.model_validate_json(content)
        except PydanticValidationError as exc:
            logger.warning("llm.schema_mismatch", schema=schema.__name__, errors=exc.error_count())
            raise ValidationError(f"Model output does not match {schema.__name__}", schema=schema.__name__) from exc


__all__ = ["StructuredExtractionClient"]

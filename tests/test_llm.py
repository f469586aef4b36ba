from types import SimpleNamespace
from typing import List, Optional

import httpx
import openai
import pytest
from pydantic import BaseModel

from core.errors import ExternalServiceError, RateLimitError, ValidationError
from import_scout.llm import StructuredExtractionClient


class Verdict(BaseModel):
    score: float
    note: Optional[str] = None


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(cls, status: int):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls("provider error", response=httpx.Response(status, request=request), body=None)


class FakeCompletions:
    def __init__(self, outcomes: List):
        self.outcomes = list(outcomes)
        self.kwargs = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return _completion(outcome)


def _client(outcomes):
    completions = FakeCompletions(outcomes)
    sleeps = []

    async def sleep(delay):
        sleeps.append(delay)

    client = StructuredExtractionClient(
        model="test-model",
        client=SimpleNamespace(chat=SimpleNamespace(completions=completions)),
        sleep=sleep,
    )
    return client, completions, sleeps


@pytest.mark.asyncio
async def test_complete_requests_json_schema_and_validates():
    client, completions, _ = _client(['{"score": 72.5, "note": "solid"}'])
    verdict = await client.complete("system", "user", Verdict, max_tokens=300)

    assert verdict == Verdict(score=72.5, note="solid")
    sent = completions.kwargs[0]
    assert sent["model"] == "test-model"
    assert sent["temperature"] == 0
    assert sent["max_tokens"] == 300
    assert sent["response_format"]["type"] == "json_schema"
    assert sent["response_format"]["json_schema"]["name"] == "Verdict"
    assert sent["messages"][0] == {"role": "system", "content": "system"}


@pytest.mark.asyncio
async def test_rate_limits_are_retried_with_backoff():
    client, completions, sleeps = _client(
        [_status_error(openai.RateLimitError, 429), _status_error(openai.InternalServerError, 500), '{"score": 1}']
    )
    verdict = await client.complete("s", "u", Verdict)

    assert verdict.score == 1
    assert len(completions.kwargs) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_surface_last_error():
    client, completions, _ = _client([_status_error(openai.RateLimitError, 429)] * 3)
    with pytest.raises(RateLimitError):
        await client.complete("s", "u", Verdict)
    assert len(completions.kwargs) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    client, completions, _ = _client([_status_error(openai.BadRequestError, 400)])
    with pytest.raises(ExternalServiceError) as excinfo:
        await client.complete("s", "u", Verdict)
    assert excinfo.value.retryable is False
    assert len(completions.kwargs) == 1


@pytest.mark.asyncio
async def test_schema_mismatch_is_a_validation_error_without_retry():
    client, completions, sleeps = _client(['{"note": "no score"}'])
    with pytest.raises(ValidationError):
        await client.complete("s", "u", Verdict)
    assert len(completions.kwargs) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_empty_content_is_a_validation_error():
    client, _, _ = _client([None])
    with pytest.raises(ValidationError):
        await client.complete("s", "u", Verdict)

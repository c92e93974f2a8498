"""
Adaptive Learning Engine - Content Analysis and LLM Client Tests
"""
import json

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from learning_engine.ai.content_analysis import (
    ContentAnalysisType,
    LLMContentAnalyzer,
    ResilientContentAnalyzer,
    RuleBasedContentAnalyzer,
    select_content_analyzer,
)
from learning_engine.ai.llm import LLMClient, translate_provider_error
from learning_engine.ai.rate_limiter import SlidingWindowRateLimiter
from learning_engine.core.errors import (
    ExternalServiceError,
    RateLimitedError,
    ServiceUnavailableError,
)
from learning_engine.schemas.common import DifficultyLevel


class _FakeResponse:
    def __init__(self, status_code: int, headers: dict | None = None):
        self.status_code = status_code
        self.headers = headers or {}


class _ProviderError(Exception):
    """Shaped like the HTTP errors raised by the provider SDKs."""

    def __init__(self, status_code: int, headers: dict | None = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response = _FakeResponse(status_code, headers)


class _FailingChatModel:
    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    async def ainvoke(self, messages):
        self.calls += 1
        raise self.error


def test_provider_errors_are_translated():
    limited = translate_provider_error(_ProviderError(429, {"retry-after": "12"}))
    assert isinstance(limited, RateLimitedError)
    assert limited.retry_after == 12.0

    assert isinstance(translate_provider_error(_ProviderError(401)), ServiceUnavailableError)
    assert isinstance(translate_provider_error(TimeoutError("read timed out")), ServiceUnavailableError)


def test_rate_limiter_window():
    now = [0.0]
    limiter = SlidingWindowRateLimiter(requests_per_minute=2, clock=lambda: now[0])

    limiter.acquire()
    limiter.acquire()
    assert limiter.remaining() == 0
    with pytest.raises(RateLimitedError) as excinfo:
        limiter.acquire()
    assert excinfo.value.retry_after == pytest.approx(60.0)

    now[0] = 61.0
    assert limiter.remaining() == 2
    limiter.acquire()


@pytest.mark.asyncio
async def test_llm_analysis_is_parsed():
    reply = "```json\n" + json.dumps({
        "key_topics": ["derivatives", "limits"],
        "difficulty": "Advanced",
        "learning_objectives": ["Differentiate polynomials"],
        "concepts": ["slope"],
        "estimated_reading_time": 12,
        "content_type": "practical",
    }) + "\n```"
    analyzer = LLMContentAnalyzer(LLMClient(llm=FakeListChatModel(responses=[reply])))

    analysis = await analyzer.analyze_content("Differentiation rules", ContentAnalysisType.CONTENT_ANALYSIS)

    assert analysis.key_topics == ["derivatives", "limits"]
    assert analysis.difficulty == DifficultyLevel.ADVANCED
    assert analysis.estimated_reading_time == 12
    assert analysis.used_fallback is False


@pytest.mark.asyncio
async def test_malformed_reply_is_an_external_failure():
    analyzer = LLMContentAnalyzer(LLMClient(llm=FakeListChatModel(responses=["not json at all"])))
    with pytest.raises(ExternalServiceError):
        await analyzer.analyze_content("anything")


@pytest.mark.asyncio
async def test_rate_limited_provider_falls_back_to_rules():
    failing = _FailingChatModel(_ProviderError(429, {"retry-after": "30"}))
    analyzer = ResilientContentAnalyzer(
        LLMContentAnalyzer(LLMClient(llm=failing)),
        RuleBasedContentAnalyzer(),
    )

    analysis = await analyzer.analyze_content(
        "Introduction to algebra: solving simple equations",
        ContentAnalysisType.DIFFICULTY_ASSESSMENT,
        known_topics=["algebra", "geometry"],
    )

    assert failing.calls == 1
    assert analysis.used_fallback is True
    assert analysis.key_topics == ["algebra"]


@pytest.mark.asyncio
async def test_local_limit_short_circuits_provider():
    failing = _FailingChatModel(AssertionError("provider must not be called"))
    limiter = SlidingWindowRateLimiter(requests_per_minute=0)
    client = LLMClient(llm=failing, rate_limiter=limiter)

    with pytest.raises(RateLimitedError):
        await client.generate("hello")
    assert failing.calls == 0


@pytest.mark.asyncio
async def test_rule_based_analysis_without_known_topics():
    analysis = await RuleBasedContentAnalyzer().analyze_content(
        "Matrices and matrices again: matrix multiplication of matrices"
    )
    assert analysis.key_topics[0] == "matrices"
    assert analysis.used_fallback is True


def test_strategy_selection_without_key():
    assert isinstance(select_content_analyzer(), RuleBasedContentAnalyzer)
    client = LLMClient(llm=FakeListChatModel(responses=["{}"]))
    assert isinstance(select_content_analyzer(client), ResilientContentAnalyzer)

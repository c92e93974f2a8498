"""
Adaptive Learning Engine - LLM Client
Single entry point to the chat model provider with telemetry, rate limiting
and translation of provider failures into engine error kinds.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from learning_engine.ai.rate_limiter import SlidingWindowRateLimiter
from learning_engine.ai.telemetry import get_tracer
from learning_engine.core.config import settings
from learning_engine.core.errors import (
    ExternalServiceError,
    RateLimitedError,
    ServiceUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Standardized response from LLM client."""
    content: str
    model: str
    tokens_prompt: int = 0
    tokens_completion: int = 0


def _retry_after(response: Any) -> Optional[float]:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    raw = headers.get("retry-after")
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def translate_provider_error(exc: Exception) -> ExternalServiceError:
    """
    Map an exception raised by the provider SDK to an engine error.

    Both the OpenAI and Anthropic SDKs expose `status_code` and `response`
    on their HTTP errors; connection failures and timeouts carry neither.
    """
    if isinstance(exc, ExternalServiceError):
        return exc

    response = getattr(exc, "response", None)
    status_code = getattr(exc, "status_code", None) or getattr(response, "status_code", None)

    if status_code == 429:
        return RateLimitedError("AI provider rate limit exceeded", retry_after=_retry_after(response))
    if status_code in (401, 403):
        return ServiceUnavailableError("AI provider rejected the configured API key")
    return ServiceUnavailableError(f"AI provider call failed: {type(exc).__name__}: {exc}")


class LLMClient:
    """
    Chat model client shared by every AI component.

    Features:
    - Multi-provider support (OpenAI, Anthropic)
    - OpenTelemetry spans per call
    - Local requests-per-minute limiter
    - Provider errors surfaced as RateLimitedError / ServiceUnavailableError
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.3,
        timeout: Optional[int] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        llm: Any = None,
    ):
        """
        Initialize the LLM client.

        Args:
            provider: LLM provider ('openai' or 'anthropic'). Defaults to settings.
            model: Model name. Defaults to settings.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            rate_limiter: Limiter shared across clients. Defaults to settings.
            llm: Pre-built LangChain chat model (skips lazy construction).
        """
        self.provider = provider or settings.LLM_PROVIDER
        self.model = model or (
            settings.OPENAI_MODEL if self.provider == "openai"
            else settings.ANTHROPIC_MODEL
        )
        self.temperature = temperature
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(settings.LLM_REQUESTS_PER_MINUTE)
        self._llm = llm

    @property
    def llm(self):
        """Lazy-load the LLM instance."""
        if self._llm is None:
            if self.provider == "openai":
                from langchain_openai import ChatOpenAI
                self._llm = ChatOpenAI(
                    model=self.model,
                    api_key=settings.OPENAI_API_KEY,
                    temperature=self.temperature,
                    timeout=self.timeout,
                    max_retries=settings.LLM_MAX_RETRIES,
                )
            else:
                from langchain_anthropic import ChatAnthropic
                self._llm = ChatAnthropic(
                    model=self.model,
                    api_key=settings.ANTHROPIC_API_KEY,
                    temperature=self.temperature,
                    timeout=self.timeout,
                    max_retries=settings.LLM_MAX_RETRIES,
                )
        return self._llm

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        component: str = "LLMClient",
    ) -> LLMResponse:
        """
        Generate a response from the LLM.

        Raises:
            RateLimitedError: local limiter or provider returned 429
            ServiceUnavailableError: invalid credential, outage or timeout
        """
        tracer = get_tracer()

        with tracer.start_as_current_span("llm.generate") as span:
            span.set_attribute("llm.model", self.model)
            span.set_attribute("llm.provider", self.provider)
            span.set_attribute("ai.component", component)
            span.set_attribute("llm.prompt_length", len(prompt))

            self.rate_limiter.acquire()

            messages = []
            if system_prompt:
                messages.append(SystemMessage(content=system_prompt))
            messages.append(HumanMessage(content=prompt))

            try:
                response = await self.llm.ainvoke(messages)
            except Exception as e:
                error = translate_provider_error(e)
                span.set_attribute("llm.error", error.code)
                logger.warning("%s call to %s failed: %s", component, self.provider, error.message)
                raise error from e

            content = response.content if isinstance(response.content, str) else str(response.content)

            tokens_prompt = 0
            tokens_completion = 0
            usage = getattr(response, "usage_metadata", None) or {}
            if usage:
                tokens_prompt = usage.get("input_tokens", 0)
                tokens_completion = usage.get("output_tokens", 0)

            span.set_attribute("llm.tokens.prompt", tokens_prompt)
            span.set_attribute("llm.tokens.completion", tokens_completion)
            span.set_attribute("llm.response_length", len(content))

            return LLMResponse(
                content=content,
                model=self.model,
                tokens_prompt=tokens_prompt,
                tokens_completion=tokens_completion,
            )

    async def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        component: str = "LLMClient",
    ) -> Any:
        """
        Generate a JSON response from the LLM.
        A reply that is not valid JSON counts as a provider failure.
        """
        response = await self.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            component=component,
        )

        content = response.content.strip()

        # Strip markdown code blocks if present
        if content.startswith("```json"):
            content = content[7:]
        if content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"AI provider returned malformed JSON: {e}") from e


# Default client instance
_default_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get the default LLM client instance."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client

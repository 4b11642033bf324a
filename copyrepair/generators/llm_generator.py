"""
LLM Generator - OpenAI chat model behind the TextGenerator protocol.

Each call gets its own ChatOpenAI and httpx.AsyncClient, so concurrent
requests never share a connection. Transient transport failures (rate limits,
timeouts, dropped connections, 5xx) are retried with exponential backoff;
anything left over is raised as GenerationFailure.
"""
import asyncio
import logging
from typing import Optional

import httpx
import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from langsmith import traceable
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import GenerationFailure
from ..utils.config import config
from ..utils.llm_stats import LLMStatistics, StatsTimer
from .base import GenerationOptions, GenerationPrompt

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    httpx.TransportError,
    asyncio.TimeoutError,
)

# Everything a failed call can surface as
CALL_ERRORS = (openai.OpenAIError, httpx.HTTPError, asyncio.TimeoutError)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, TRANSIENT_ERRORS)


def _is_rate_limit(error: BaseException) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    text = str(error).lower()
    return "rate limit" in text or "429" in text


class LLMGenerator:
    """OpenAI-backed text generator."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.model = model or config.GENERATOR_MODEL
        self.api_key = api_key or config.OPENAI_API_KEY
        self.base_url = base_url or config.OPENAI_BASE_URL or None
        self.timeout = timeout or config.GENERATOR_TIMEOUT
        self.max_retries = max_retries or config.GENERATOR_MAX_RETRIES
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=10)
        self.stats = LLMStatistics()

    def _get_llm(self, options: GenerationOptions, http_client: httpx.AsyncClient) -> ChatOpenAI:
        """Chat model for one call. Retries are ours, so the client does none."""
        return ChatOpenAI(
            model=self.model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            max_retries=0,
            request_timeout=self.timeout,
            http_async_client=http_client,
            api_key=self.api_key,
            base_url=self.base_url,
        )

    def _before_sleep(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.stats.add_retry(is_rate_limit=_is_rate_limit(error) if error else False)
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"LLM call attempt {retry_state.attempt_number}/{self.max_retries} failed: {error}. "
            f"Retrying in {wait:.1f}s..."
        )

    @traceable(name="llm_generate", run_type="llm")
    async def generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        """
        Run one chat completion.

        Args:
            prompt: System instructions and task content
            options: Temperature, max output tokens and call purpose

        Returns:
            Generated text, stripped

        Raises:
            GenerationFailure: Transport, auth or quota error, or an empty response
        """
        messages = [SystemMessage(content=prompt.instructions), HumanMessage(content=prompt.content)]
        prompt_tokens = completion_tokens = 0

        with StatsTimer() as timer:
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_retries),
                    wait=self.retry_wait,
                    retry=retry_if_exception(_is_transient),
                    before_sleep=self._before_sleep,
                    reraise=True,
                ):
                    with attempt:
                        async with httpx.AsyncClient(
                            timeout=httpx.Timeout(float(self.timeout), connect=30.0),
                            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                        ) as http_client:
                            llm = self._get_llm(options, http_client)
                            response = await llm.ainvoke(messages)
            except CALL_ERRORS as e:
                self.stats.add_call(False, purpose=options.purpose, elapsed_time=timer.elapsed)
                logger.error(f"LLM call failed ({options.purpose}): {type(e).__name__}: {e}")
                raise GenerationFailure(f"LLM call failed: {e}") from e

        usage = getattr(response, "usage_metadata", None) or {}
        prompt_tokens = usage.get("input_tokens", 0)
        completion_tokens = usage.get("output_tokens", 0)

        content = response.content if hasattr(response, "content") else str(response)
        if isinstance(content, list):
            content = "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
        text = (content or "").strip()

        self.stats.add_call(
            bool(text),
            purpose=options.purpose,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            elapsed_time=timer.elapsed,
        )
        if not text:
            raise GenerationFailure("LLM returned an empty response")

        logger.info(
            f"LLM call ok ({options.purpose}): {len(text)} chars, "
            f"{prompt_tokens}+{completion_tokens} tokens, {timer.elapsed:.1f}s"
        )
        return text

"""Test the OpenAI-backed generator without network access."""
import asyncio

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage
from tenacity import wait_none

from copyrepair.exceptions import GenerationFailure
from copyrepair.generators.base import GenerationOptions, GenerationPrompt, TextGenerator
from copyrepair.generators.llm_generator import LLMGenerator
from conftest import ScriptedGenerator


COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
PROMPT = GenerationPrompt(instructions="system", content="task")
OPTIONS = GenerationOptions(temperature=0.2, max_tokens=100, purpose="generate")


class FakeChatModel:
    """Plays back outcomes in order; the last one repeats."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.messages = None
        self.calls = 0

    async def ainvoke(self, messages):
        self.messages = messages
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_generator(monkeypatch, *outcomes, max_retries=1):
    generator = LLMGenerator(model="test-model", api_key="test-key", max_retries=max_retries)
    generator.retry_wait = wait_none()
    model = FakeChatModel(*outcomes)
    monkeypatch.setattr(generator, "_get_llm", lambda options, http_client: model)
    return generator, model


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))


def test_generate_returns_stripped_text(monkeypatch):
    message = AIMessage(
        content="  ТЕМА\n1. Раз  \n",
        usage_metadata={"input_tokens": 12, "output_tokens": 5, "total_tokens": 17},
    )
    generator, model = make_generator(monkeypatch, message)

    text = asyncio.run(generator.generate(PROMPT, OPTIONS))

    assert text == "ТЕМА\n1. Раз"
    assert [m.content for m in model.messages] == ["system", "task"]
    summary = generator.stats.get_summary()
    assert summary["calls"]["successful"] == 1
    assert summary["tokens"]["total"] == 17
    assert summary["per_purpose"]["generate"]["calls"] == 1
    assert summary["per_purpose"]["generate"]["completion_tokens"] == 5


def test_list_content_is_joined(monkeypatch):
    message = AIMessage(content=[{"type": "text", "text": "ТЕМА"}, {"type": "text", "text": "\n1. Раз"}])
    generator, _ = make_generator(monkeypatch, message)

    assert asyncio.run(generator.generate(PROMPT, OPTIONS)) == "ТЕМА\n1. Раз"


def test_empty_response_is_a_failure(monkeypatch):
    generator, _ = make_generator(monkeypatch, AIMessage(content="   "))

    with pytest.raises(GenerationFailure):
        asyncio.run(generator.generate(PROMPT, OPTIONS))
    assert generator.stats.failed_calls == 1


def test_transport_error_is_wrapped(monkeypatch):
    error = connection_error()
    generator, _ = make_generator(monkeypatch, error)

    with pytest.raises(GenerationFailure) as exc_info:
        asyncio.run(generator.generate(PROMPT, OPTIONS))

    assert isinstance(exc_info.value.__cause__, openai.APIConnectionError)
    assert generator.stats.get_summary()["per_purpose"]["generate"]["failed"] == 1


def test_generators_satisfy_protocol():
    assert isinstance(LLMGenerator(api_key="test-key"), TextGenerator)
    assert isinstance(ScriptedGenerator([]), TextGenerator)


# ============================================================================
# RETRIES
# ============================================================================

def test_transient_error_is_retried(monkeypatch):
    """Test that a dropped connection is retried and the second call's text is returned."""
    generator, model = make_generator(
        monkeypatch, connection_error(), AIMessage(content="ТЕМА\n1. Раз"), max_retries=3
    )

    assert asyncio.run(generator.generate(PROMPT, OPTIONS)) == "ТЕМА\n1. Раз"
    assert model.calls == 2
    summary = generator.stats.get_summary()
    assert summary["retries"]["attempts"] == 1
    assert summary["calls"]["successful"] == 1
    assert summary["calls"]["failed"] == 0


def test_rate_limit_retry_is_counted(monkeypatch):
    request = httpx.Request("POST", COMPLETIONS_URL)
    error = openai.RateLimitError("429 rate limit", response=httpx.Response(429, request=request), body=None)
    generator, model = make_generator(monkeypatch, error, AIMessage(content="ok"), max_retries=3)

    assert asyncio.run(generator.generate(PROMPT, OPTIONS)) == "ok"
    assert model.calls == 2
    assert generator.stats.rate_limit_errors == 1


def test_non_transient_error_is_not_retried(monkeypatch):
    """Test that an auth error fails on the first call as GenerationFailure."""
    request = httpx.Request("POST", COMPLETIONS_URL)
    error = openai.AuthenticationError("bad key", response=httpx.Response(401, request=request), body=None)
    generator, model = make_generator(monkeypatch, error, AIMessage(content="ok"), max_retries=3)

    with pytest.raises(GenerationFailure) as exc_info:
        asyncio.run(generator.generate(PROMPT, OPTIONS))

    assert model.calls == 1
    assert isinstance(exc_info.value.__cause__, openai.AuthenticationError)
    assert generator.stats.retry_attempts == 0


def test_retries_stop_at_max_retries(monkeypatch):
    generator, model = make_generator(monkeypatch, connection_error(), max_retries=3)

    with pytest.raises(GenerationFailure):
        asyncio.run(generator.generate(PROMPT, OPTIONS))

    assert model.calls == 3
    assert generator.stats.retry_attempts == 2
    assert generator.stats.failed_calls == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from gptbot.llm.errors import (
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    ModerationUnavailableError,
    error_messages,
    parse_error_message,
    wrap_openai_error,
)
from gptbot.llm.openai_service import Completion, OpenAIService

from conftest import make_config

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def sdk_response(content="Hello there", completion_id="chatcmpl-abc"):
    return SimpleNamespace(
        id=completion_id,
        model="gpt-4o-2024-08-06",
        choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=4, total_tokens=14),
    )


def stub_client(create=None, moderate=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create or AsyncMock(return_value=sdk_response()))),
        moderations=SimpleNamespace(create=moderate or AsyncMock()),
    )


@pytest.fixture
def service():
    return OpenAIService(
        make_config(
            default_model="gpt-4o",
            generation_parameters={"temperature": 0.2, "max_completion_tokens_per_model": {"gpt-4o": 256}},
        ),
        http_client=httpx.AsyncClient(),
    )


def test_completion_from_response():
    completion = Completion.from_response(sdk_response(content="  padded  "))
    assert completion.id == "chatcmpl-abc"
    assert completion.content == "padded"
    assert completion.usage.total_tokens == 14


@pytest.mark.asyncio
async def test_chat_completion_sends_user_and_parameters(service):
    client = stub_client()
    service.client_for_model = lambda model: client

    completion = await service.chat_completion([{"role": "user", "content": "Hi"}], 42, "gpt-4o")

    assert completion.model == "gpt-4o-2024-08-06"
    client.chat.completions.create.assert_awaited_once_with(
        model="gpt-4o",
        messages=[{"role": "user", "content": "Hi"}],
        user="42",
        temperature=0.2,
        max_tokens=256,
    )


@pytest.mark.asyncio
async def test_chat_completion_wraps_transport_errors(service):
    create = AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST))
    service.client_for_model = lambda model: stub_client(create=create)

    with pytest.raises(LLMConnectionError):
        await service.chat_completion([{"role": "user", "content": "Hi"}], 1, "gpt-4o")


@pytest.mark.asyncio
async def test_is_flagged(service):
    moderate = AsyncMock(return_value=SimpleNamespace(results=[SimpleNamespace(flagged=True)]))
    service._client_for = lambda base_url: stub_client(moderate=moderate)
    assert await service.is_flagged("something bad") is True
    moderate.assert_awaited_once_with(input="something bad")


@pytest.mark.asyncio
async def test_moderation_outage_raises(service):
    moderate = AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST))
    service._client_for = lambda base_url: stub_client(moderate=moderate)
    with pytest.raises(ModerationUnavailableError):
        await service.is_flagged("hi")


@pytest.mark.asyncio
async def test_models_with_base_url_get_their_own_client():
    config = make_config(selectable_models=["gpt-4o", {"name": "local", "base_url": "http://localhost:8080/v1"}])
    svc = OpenAIService(config, http_client=httpx.AsyncClient())
    try:
        assert svc.client_for_model("gpt-4o") is svc.client_for_model("gpt-3.5-turbo")
        local = svc.client_for_model("local")
        assert local is not svc.client_for_model("gpt-4o")
        assert str(local.base_url).startswith("http://localhost:8080/v1")
    finally:
        await svc.close()


def test_wrap_openai_error():
    rate_limited = openai.RateLimitError(
        "slow down", response=httpx.Response(429, request=REQUEST), body=None
    )
    assert isinstance(wrap_openai_error(rate_limited), LLMRateLimitError)
    assert isinstance(wrap_openai_error(openai.APIConnectionError(request=REQUEST)), LLMConnectionError)
    assert type(wrap_openai_error(openai.OpenAIError("odd"))) is LLMError


def test_error_messages():
    admin, user = error_messages(LLMRateLimitError("429 Too Many Requests"))
    assert admin.startswith("⚠️ Rate Limited")
    assert user == "Something went wrong"
    assert parse_error_message(LLMConnectionError("refused")).startswith("❌ Connection Error")
    assert "try again later" in error_messages(ModerationUnavailableError("down"))[1]

"""Test unified LLM client functionality."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from clinic_ingest.core.exceptions import APIClientError, ConfigurationError
from clinic_ingest.core.llm_client import BaseLLMClient, OpenRouterClient
from clinic_ingest.core.unified_llm import (
    LLMProvider,
    UnavailableLLMClient,
    UnifiedLLMClient,
    create_reasoning_client,
)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def llm_settings(**overrides):
    values = dict(
        provider="openrouter",
        gemini_api_key="",
        gemini_model="gemini-2.0-flash",
        openrouter_api_key="",
        openrouter_api_url=OPENROUTER_URL,
        openrouter_model="openai/gpt-4o",
        timeout_seconds=30,
        max_retries=2,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_missing_key_gives_unavailable_client():
    client = create_reasoning_client(llm_settings(openrouter_api_key="   "))

    assert isinstance(client, UnavailableLLMClient)
    assert client.available is False
    assert "OPENROUTER_API_KEY" in client.reason


def test_missing_gemini_key_gives_unavailable_client():
    client = create_reasoning_client(llm_settings(provider="gemini", openrouter_api_key="or-key"))

    assert isinstance(client, UnavailableLLMClient)
    assert "GEMINI_API_KEY" in client.reason


def test_unknown_provider_gives_unavailable_client():
    client = create_reasoning_client(llm_settings(provider="anthropic-direct", openrouter_api_key="or-key"))

    assert client.available is False


def test_configured_openrouter_client():
    client = create_reasoning_client(llm_settings(openrouter_api_key="or-key"))

    assert isinstance(client, UnifiedLLMClient)
    assert client.available is True
    assert client.provider == LLMProvider.OPENROUTER
    assert isinstance(client.client, OpenRouterClient)


@pytest.mark.asyncio
async def test_unavailable_client_raises_on_use():
    client = UnavailableLLMClient("OPENROUTER_API_KEY not configured")

    with pytest.raises(ConfigurationError):
        await client.generate_json(system_instruction="s", prompt="p")


@pytest.mark.asyncio
async def test_generate_json_requests_json_output():
    client = UnifiedLLMClient(provider="openrouter", api_key="or-key", model="openai/gpt-4o")
    client.client.generate_content = AsyncMock(return_value='{"procedures": []}')

    result = await client.generate_json(system_instruction="system", prompt="user", temperature=0.1)

    assert result == '{"procedures": []}'
    kwargs = client.client.generate_content.call_args.kwargs
    assert kwargs["contents"] == "user"
    assert kwargs["system_instruction"] == "system"
    assert kwargs["generation_config"] == {"temperature": 0.1, "response_mime_type": "application/json"}


@pytest.mark.asyncio
async def test_openrouter_payload_and_response():
    client = OpenRouterClient(api_key="or-key", model="openai/gpt-4o")
    client.client.call_api = AsyncMock(return_value={"choices": [{"message": {"content": '{"a": 1}'}}]})

    content = await client.generate_content(
        contents="user",
        system_instruction="system",
        generation_config={"temperature": 0.1, "response_mime_type": "application/json"},
    )

    assert content == '{"a": 1}'
    payload = client.client.call_api.call_args.kwargs["payload"]
    assert payload["messages"][0] == {"role": "system", "content": "system"}
    assert payload["temperature"] == 0.1
    assert payload["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_openrouter_without_choices_raises():
    client = OpenRouterClient(api_key="or-key", model="openai/gpt-4o")
    client.client.call_api = AsyncMock(return_value={"error": "overloaded"})

    with pytest.raises(APIClientError):
        await client.generate_content(contents="user")


def _response(status_code, **kwargs):
    return httpx.Response(status_code, request=httpx.Request("POST", OPENROUTER_URL), **kwargs)


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    client = BaseLLMClient(api_key="k", base_url=OPENROUTER_URL, max_retries=3, retry_delay=0)

    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=_response(401, text="bad key"))) as post:
        with pytest.raises(APIClientError):
            await client.call_api({"model": "m"})

    assert post.await_count == 1


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    client = BaseLLMClient(api_key="k", base_url=OPENROUTER_URL, max_retries=3, retry_delay=0)
    responses = [_response(503, text="busy"), _response(200, json={"choices": []})]

    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(side_effect=responses)) as post:
        result = await client.call_api({"model": "m"})

    assert result == {"choices": []}
    assert post.await_count == 2


@pytest.mark.asyncio
async def test_non_json_body_raises_client_error():
    client = BaseLLMClient(api_key="k", base_url=OPENROUTER_URL, max_retries=1, retry_delay=0)
    html = _response(200, text="<html>gateway hiccup</html>")

    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=html)):
        with pytest.raises(APIClientError) as exc_info:
            await client.call_api({"model": "m"})

    assert "non-JSON" in exc_info.value.message


@pytest.mark.asyncio
async def test_non_object_body_raises_client_error():
    client = BaseLLMClient(api_key="k", base_url=OPENROUTER_URL, max_retries=1, retry_delay=0)

    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=_response(200, json=["choices"]))):
        with pytest.raises(APIClientError):
            await client.call_api({"model": "m"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"choices": "none"},
        {"choices": ["just text"]},
        {"choices": [{"message": "just text"}]},
        {"choices": [{"message": {"content": {"procedures": []}}}]},
    ],
)
async def test_openrouter_malformed_choices_raise(body):
    client = OpenRouterClient(api_key="or-key", model="openai/gpt-4o")
    client.client.call_api = AsyncMock(return_value=body)

    with pytest.raises(APIClientError):
        await client.generate_content(contents="user")

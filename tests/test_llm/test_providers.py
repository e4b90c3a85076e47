import json

import httpx
import pytest

from reactloop.config import Config
from reactloop.llm import (
    CompletionOptions,
    Message,
    OllamaProvider,
    OpenAICompatibleProvider,
    create_provider,
    create_provider_from_config,
)


def json_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_compatible_success():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "model": "llama-test",
                "choices": [{"message": {"role": "assistant", "content": "Final Answer: hi"}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 3, "total_tokens": 13},
            },
        )

    provider = OpenAICompatibleProvider(
        model="llama-test",
        base_url="https://api.example.test/v1/",
        api_key="secret",
        client=json_client(handler),
    )

    result = await provider.complete(
        [Message(role="system", content="sys"), Message(role="user", content="hello")],
        CompletionOptions(temperature=0.0, max_tokens=50),
    )

    assert result.success is True
    assert result.content == "Final Answer: hi"
    assert result.usage["total_tokens"] == 13
    request = captured[0]
    assert str(request.url) == "https://api.example.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body["temperature"] == 0.0
    assert body["max_tokens"] == 50
    assert body["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
    ]
    await provider.close()


@pytest.mark.asyncio
async def test_api_error_is_returned_as_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

    provider = OpenAICompatibleProvider(model="m", api_key="secret", client=json_client(handler))

    result = await provider.complete([Message(role="user", content="hello")])

    assert result.success is False
    assert result.error == "API error 429: Rate limit reached"


@pytest.mark.asyncio
async def test_transport_error_is_returned_as_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = OpenAICompatibleProvider(model="m", api_key="secret", client=json_client(handler))

    result = await provider.complete([Message(role="user", content="hello")])

    assert result.success is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request():
    calls = []
    provider = OpenAICompatibleProvider(
        model="m",
        client=json_client(lambda request: calls.append(request) or httpx.Response(200, json={})),
    )

    result = await provider.complete([Message(role="user", content="hello")])

    assert result.success is False
    assert "API key not configured" in result.error
    assert calls == []


@pytest.mark.asyncio
async def test_empty_choices_is_failure():
    provider = OpenAICompatibleProvider(
        model="m",
        api_key="secret",
        client=json_client(lambda request: httpx.Response(200, json={"choices": []})),
    )

    result = await provider.complete([Message(role="user", content="hello")])

    assert result.success is False
    assert result.error == "No choices in response"


@pytest.mark.asyncio
async def test_ollama_chat():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={"message": {"content": "Thought: ok"}, "prompt_eval_count": 5, "eval_count": 2},
        )

    provider = OllamaProvider(model="llama3.2", client=json_client(handler))

    result = await provider.complete([Message(role="user", content="hello")])

    assert result.success is True
    assert result.content == "Thought: ok"
    assert result.usage == {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}
    assert captured[0].url.path == "/api/chat"
    assert json.loads(captured[0].content)["options"]["num_predict"] == 6000


def test_create_provider_uses_env_key(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "from-env")

    provider = create_provider("groq", model="m")

    assert isinstance(provider, OpenAICompatibleProvider)
    assert provider.api_key == "from-env"
    assert provider.base_url == "https://api.groq.com/openai/v1"


def test_create_provider_rejects_unknown_backend():
    with pytest.raises(ValueError, match="not supported"):
        create_provider("carrier-pigeon")


def test_create_provider_from_config():
    config = Config()
    config.model.provider = "ollama"
    config.model.model = "qwen3"
    config.model.base_url = "http://localhost:9999"

    provider = create_provider_from_config(config)

    assert isinstance(provider, OllamaProvider)
    assert provider.model == "qwen3"
    assert provider.base_url == "http://localhost:9999"


def test_message_dict_round_trip():
    message = Message(role="tool", content="42", tool_call_id="call_1", tool_name="calc")

    assert Message.from_dict(message.to_dict()) == message
    assert Message(role="user", content="hi").to_dict() == {"role": "user", "content": "hi"}

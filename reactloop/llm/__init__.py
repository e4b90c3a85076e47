"""Completion backends: direct HTTP calls to OpenAI-compatible and Ollama APIs."""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from reactloop.exceptions import LLMAPIError, LLMError
from reactloop.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://127.0.0.1:11434"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"

_OPENAI_COMPATIBLE_DEFAULTS = {
    "groq": (GROQ_BASE_URL, "GROQ_API_KEY"),
    "openai": (OPENAI_BASE_URL, "OPENAI_API_KEY"),
}


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | None
    tool_call_id: str | None = None
    tool_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_name:
            data["tool_name"] = self.tool_name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            role=str(data.get("role", "")),
            content=data.get("content"),
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name"),
        )


@dataclass
class CompletionOptions:
    """Per-call overrides; ``None`` falls back to provider defaults."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class CompletionResult:
    """Result of a completion call. Failures are values, not exceptions."""

    success: bool
    content: str | None = None
    error: str | None = None
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for completion backends."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        pass

    async def close(self) -> None:
        pass


def _convert_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert messages to the chat wire format."""
    result = []
    for msg in messages:
        if isinstance(msg, dict):
            msg = Message.from_dict(msg)
        if msg.role not in {"system", "user", "assistant", "tool"}:
            continue
        entry: dict[str, Any] = {"role": msg.role, "content": msg.content or ""}
        if msg.role == "tool" and msg.tool_call_id:
            entry["tool_call_id"] = msg.tool_call_id
        result.append(entry)
    return result


class _HTTPProvider(LLMProvider):
    """Shared plumbing for providers that POST JSON over httpx."""

    def __init__(
        self,
        model: str,
        base_url: str,
        temperature: float = 0.2,
        max_tokens: int = 6000,
        api_key: str | None = None,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _resolve(self, options: CompletionOptions | None) -> tuple[str, float, int]:
        options = options or CompletionOptions()
        model = options.model or self.model
        temperature = self.temperature if options.temperature is None else options.temperature
        max_tokens = options.max_tokens or self.max_tokens
        return model, temperature, max_tokens

    async def _post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            log.debug("Calling completion backend", url=url, model=body.get("model"))
            response = await self.client.post(url, json=body, headers=self._headers())
            if not response.is_success:
                raise LLMAPIError(
                    f"API error {response.status_code}: {self._error_detail(response)}",
                    status_code=response.status_code,
                )
            return response.json()
        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"HTTP error: {e}")
        except json.JSONDecodeError as e:
            raise LLMError(f"Response decode error: {e}")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        text = response.text
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text.strip()[:500]
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
        return text.strip()[:500]

    @abstractmethod
    async def _chat(
        self, messages: list[Message], model: str, temperature: float, max_tokens: int
    ) -> CompletionResult:
        pass

    async def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResult:
        """Generate a completion; errors are reported in the result."""
        model, temperature, max_tokens = self._resolve(options)
        try:
            return await self._chat(messages, model, temperature, max_tokens)
        except LLMError as e:
            log.warning("Completion failed", model=model, error=str(e))
            return CompletionResult(success=False, error=str(e), model=model)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


class OpenAICompatibleProvider(_HTTPProvider):
    """Chat completions over an OpenAI-compatible API (Groq, OpenAI)."""

    def __init__(self, model: str, base_url: str = GROQ_BASE_URL, **kwargs: Any):
        super().__init__(model=model, base_url=base_url, **kwargs)

    async def _chat(
        self, messages: list[Message], model: str, temperature: float, max_tokens: int
    ) -> CompletionResult:
        if not self.api_key:
            return CompletionResult(
                success=False,
                error="API key not configured. Set model.api_key in config.",
                model=model,
            )
        body: dict[str, Any] = {
            "model": model,
            "messages": _convert_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        data = await self._post(f"{self.base_url}/chat/completions", body)

        choices = data.get("choices") or []
        if not choices:
            return CompletionResult(success=False, error="No choices in response", model=model)
        content = (choices[0].get("message") or {}).get("content")
        usage = data.get("usage") or {}
        return CompletionResult(
            success=True,
            content=content,
            model=str(data.get("model") or model),
            usage={
                "prompt_tokens": int(usage.get("prompt_tokens", 0)),
                "completion_tokens": int(usage.get("completion_tokens", 0)),
                "total_tokens": int(usage.get("total_tokens", 0)),
            },
        )


class OllamaProvider(_HTTPProvider):
    """Direct Ollama API provider."""

    def __init__(self, model: str = "llama3.2", base_url: str = OLLAMA_NATIVE_BASE_URL, **kwargs: Any):
        super().__init__(model=model, base_url=base_url, **kwargs)

    async def _chat(
        self, messages: list[Message], model: str, temperature: float, max_tokens: int
    ) -> CompletionResult:
        body: dict[str, Any] = {
            "model": model,
            "messages": _convert_messages(messages),
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        data = await self._post(f"{self.base_url}/api/chat", body)

        content = (data.get("message") or {}).get("content", "")
        prompt_tokens = int(data.get("prompt_eval_count", 0))
        completion_tokens = int(data.get("eval_count", 0))
        return CompletionResult(
            success=True,
            content=content,
            model=model,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        )


def create_provider(
    provider: str = "groq",
    model: str = "meta-llama/llama-4-maverick-17b-128e-instruct",
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.2,
    max_tokens: int = 6000,
    timeout: float = 120.0,
) -> LLMProvider:
    """Create a completion backend.

    Args:
        provider: Provider name (groq, openai, ollama)
        model: Model name
        api_key: Optional API key (falls back to GROQ_API_KEY / OPENAI_API_KEY)
        base_url: Optional base URL
        temperature: Default temperature
        max_tokens: Default max tokens

    Returns:
        Configured LLMProvider instance
    """
    name = (provider or "").strip().lower()
    if name == "ollama":
        return OllamaProvider(
            model=model,
            base_url=base_url or OLLAMA_NATIVE_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key,
            timeout=timeout,
        )
    if name in _OPENAI_COMPATIBLE_DEFAULTS:
        default_base, env_key = _OPENAI_COMPATIBLE_DEFAULTS[name]
        return OpenAICompatibleProvider(
            model=model,
            base_url=base_url or default_base,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key or os.environ.get(env_key) or None,
            timeout=timeout,
        )
    raise ValueError(f"Provider '{provider}' not supported. Use 'groq', 'openai' or 'ollama'.")


def create_provider_from_config(cfg: Any = None) -> LLMProvider:
    """Create a provider from the ``model`` section of the config."""
    if cfg is None:
        from reactloop.config import get_config

        cfg = get_config()
    return create_provider(
        provider=cfg.model.provider,
        model=cfg.model.model,
        api_key=cfg.model.api_key or None,
        base_url=cfg.model.base_url or None,
        temperature=cfg.model.temperature,
        max_tokens=cfg.model.max_tokens,
        timeout=cfg.model.timeout,
    )

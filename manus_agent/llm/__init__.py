"""OpenAI-compatible chat-completions provider over httpx."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from manus_agent.exceptions import LLMAPIError, LLMEmptyResponseError, LLMError
from manus_agent.logging import get_logger

log = get_logger(__name__)


class LLMUsage(BaseModel):
    """Token accounting reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "LLMUsage") -> "LLMUsage":
        return LLMUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class _WireMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = ""
    content: str | None = None


class _WireChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int = 0
    finish_reason: str | None = None
    message: _WireMessage | None = None
    delta: _WireMessage | None = None


class ChatCompletionPayload(BaseModel):
    """Response body (or one stream chunk) of ``/chat/completions``."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    model: str = ""
    choices: list[_WireChoice] = Field(default_factory=list)
    usage: LLMUsage | None = None


@dataclass
class LLMResponse:
    """Batch completion result."""

    content: str
    finish_reason: str | None = None
    usage: LLMUsage | None = None
    model: str = ""


@dataclass
class LLMStreamChunk:
    """One streamed event: a content delta, or the closing record."""

    content: str = ""
    finish_reason: str | None = None
    usage: LLMUsage | None = None
    done: bool = False


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        pass

    @abstractmethod
    def complete_streaming(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[LLMStreamChunk]:
        pass

    async def close(self) -> None:
        return None


class OpenAICompatibleProvider(LLMProvider):
    """Provider for any server exposing OpenAI's ``/chat/completions``."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        temperature: float = 0.6,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the provider.

        Args:
            base_url: API root, e.g. ``http://localhost:1234/v1/``
            model: Default model name
            api_key: Bearer token; omitted from requests when empty
            temperature: Default sampling temperature
            max_tokens: Default completion limit
            timeout: Request timeout in seconds
            client: Optional pre-built httpx client (tests inject one)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _body(
        self,
        messages: list[dict[str, str]],
        model: str | None,
        max_tokens: int | None,
        temperature: float | None,
        stream: bool,
    ) -> dict[str, Any]:
        return {
            "model": model or self.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "stream": stream,
        }

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a completion."""
        body = self._body(messages, model, max_tokens, temperature, stream=False)
        try:
            log.debug("Calling LLM", model=body["model"], url=self.url, msg_count=len(messages))
            response = await self.client.post(self.url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise LLMAPIError(f"LLM HTTP error: {e}") from e

        log.debug("LLM response status", status=response.status_code)
        if not response.is_success:
            raise LLMAPIError(
                f"LLM API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = ChatCompletionPayload.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise LLMError(f"LLM response decode error: {e}") from e

        if not payload.choices or payload.choices[0].message is None:
            raise LLMEmptyResponseError("LLM response contained no choices")

        choice = payload.choices[0]
        return LLMResponse(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason,
            usage=payload.usage,
            model=payload.model or body["model"],
        )

    async def complete_streaming(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[LLMStreamChunk]:
        """Stream a completion as server-sent events.

        Yields one chunk per content delta and finishes with a ``done``
        chunk carrying the last finish reason and usage seen. The closing
        chunk's ``finish_reason`` is ``"stop"`` when the stream ended with
        ``data: [DONE]``.
        """
        body = self._body(messages, model, max_tokens, temperature, stream=True)
        finish_reason: str | None = None
        usage: LLMUsage | None = None
        try:
            async with self.client.stream("POST", self.url, json=body, headers=self._headers()) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise LLMAPIError(
                        f"LLM API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )

                async for line in response.aiter_lines():
                    if not line.strip() or not line.startswith("data: "):
                        continue
                    data = line[len("data: "):].strip()
                    if data == "[DONE]":
                        finish_reason = finish_reason or "stop"
                        break
                    try:
                        chunk = ChatCompletionPayload.model_validate_json(data)
                    except ValidationError:
                        continue

                    if chunk.usage is not None:
                        usage = chunk.usage
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
                    source = choice.message if choice.message and choice.message.content else choice.delta
                    if source is not None and source.content:
                        yield LLMStreamChunk(content=source.content)
        except httpx.HTTPError as e:
            raise LLMAPIError(f"LLM streaming error: {e}") from e

        yield LLMStreamChunk(finish_reason=finish_reason, usage=usage, done=True)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(
    base_url: str,
    model: str,
    api_key: str | None = None,
    temperature: float = 0.6,
    max_tokens: int = 4096,
    timeout: float = 120.0,
) -> LLMProvider:
    """Create an LLM provider for an OpenAI-compatible endpoint."""
    if not base_url.strip():
        raise ValueError("LLM base_url must not be empty")
    return OpenAICompatibleProvider(
        base_url=base_url,
        model=model,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )


# Global provider instance
_provider: LLMProvider | None = None


def get_provider() -> LLMProvider:
    """Get the global LLM provider instance."""
    global _provider
    if _provider is None:
        from manus_agent.config import get_config
        cfg = get_config()
        _provider = create_provider(
            base_url=cfg.llm.base_url,
            model=cfg.llm.model,
            api_key=cfg.llm.api_key or None,
            temperature=cfg.llm.temperature,
            max_tokens=cfg.llm.max_tokens,
            timeout=cfg.llm.timeout,
        )
    return _provider


def set_provider(provider: LLMProvider | None) -> None:
    """Set the global LLM provider instance."""
    global _provider
    _provider = provider


async def close_provider() -> None:
    """Close and forget the global LLM provider, if one was created."""
    global _provider
    provider, _provider = _provider, None
    if provider is not None:
        await provider.close()

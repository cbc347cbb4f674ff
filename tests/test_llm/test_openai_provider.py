import json

import httpx
import pytest

from manus_agent.exceptions import LLMAPIError, LLMEmptyResponseError
from manus_agent.llm import LLMUsage, OpenAICompatibleProvider, create_provider


def _provider(handler, api_key: str | None = None) -> OpenAICompatibleProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleProvider(
        base_url="http://llm.test/v1/",
        model="test-model",
        api_key=api_key,
        client=client,
    )


def _sse(*events: str) -> bytes:
    return "".join(f"{event}\n\n" for event in events).encode("utf-8")


@pytest.mark.asyncio
async def test_complete_posts_wire_body_and_parses_choice():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "id": "cmpl-1",
                "model": "test-model",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": "hello"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            },
        )

    provider = _provider(handler, api_key="secret")
    response = await provider.complete([{"role": "user", "content": "hi"}], temperature=0.1)
    await provider.close()

    assert response.content == "hello"
    assert response.finish_reason == "stop"
    assert response.usage == LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)

    request = seen[0]
    assert str(request.url) == "http://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "hi"}],
        "max_tokens": 4096,
        "temperature": 0.1,
        "stream": False,
    }


@pytest.mark.asyncio
async def test_complete_without_key_sends_no_authorization():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    provider = _provider(handler)
    response = await provider.complete([{"role": "user", "content": "hi"}])
    await provider.close()

    assert response.content == "ok"
    assert response.usage is None
    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_complete_non_success_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="overloaded")

    provider = _provider(handler)
    with pytest.raises(LLMAPIError) as exc_info:
        await provider.complete([{"role": "user", "content": "hi"}])
    await provider.close()

    assert exc_info.value.status_code == 503
    assert "overloaded" in str(exc_info.value)


@pytest.mark.asyncio
async def test_complete_transport_error_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = _provider(handler)
    with pytest.raises(LLMAPIError) as exc_info:
        await provider.complete([{"role": "user", "content": "hi"}])
    await provider.close()

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_complete_without_choices_raises_empty_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    provider = _provider(handler)
    with pytest.raises(LLMEmptyResponseError):
        await provider.complete([{"role": "user", "content": "hi"}])
    await provider.close()


@pytest.mark.asyncio
async def test_streaming_yields_deltas_and_closing_chunk():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            content=_sse(
                'data: {"choices":[{"delta":{"content":"Hel"}}]}',
                "data: {not json",
                ": keep-alive",
                'data: {"choices":[{"delta":{"content":"lo"}}]}',
                'data: {"choices":[],"usage":{"prompt_tokens":3,"completion_tokens":2,"total_tokens":5}}',
                "data: [DONE]",
            ),
            headers={"Content-Type": "text/event-stream"},
        )

    provider = _provider(handler)
    chunks = [chunk async for chunk in provider.complete_streaming([{"role": "user", "content": "hi"}])]
    await provider.close()

    assert seen[0]["stream"] is True
    assert [c.content for c in chunks if not c.done] == ["Hel", "lo"]
    closing = chunks[-1]
    assert closing.done is True
    assert closing.finish_reason == "stop"
    assert closing.usage == LLMUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5)


@pytest.mark.asyncio
async def test_streaming_keeps_reported_finish_reason_and_message_content():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=_sse('data: {"choices":[{"message":{"content":"whole"},"finish_reason":"length"}]}'),
        )

    provider = _provider(handler)
    chunks = [chunk async for chunk in provider.complete_streaming([{"role": "user", "content": "hi"}])]
    await provider.close()

    assert [c.content for c in chunks if not c.done] == ["whole"]
    assert chunks[-1].finish_reason == "length"
    assert chunks[-1].usage is None


@pytest.mark.asyncio
async def test_streaming_non_success_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad key")

    provider = _provider(handler)
    with pytest.raises(LLMAPIError) as exc_info:
        async for _ in provider.complete_streaming([{"role": "user", "content": "hi"}]):
            pass
    await provider.close()

    assert exc_info.value.status_code == 401


def test_usage_addition():
    usage = LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)

    assert usage + usage == LLMUsage(prompt_tokens=20, completion_tokens=10, total_tokens=30)


def test_create_provider_strips_trailing_slash():
    provider = create_provider(base_url="http://localhost:1234/v1/", model="gemma")

    assert isinstance(provider, OpenAICompatibleProvider)
    assert provider.url == "http://localhost:1234/v1/chat/completions"


def test_create_provider_requires_base_url():
    with pytest.raises(ValueError):
        create_provider(base_url="  ", model="gemma")

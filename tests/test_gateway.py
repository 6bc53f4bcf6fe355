"""Tests for the completion gateways."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import pytest

from coachbot.chat.context import Turn
from coachbot.chat.gateway import (
    DEEPSEEK_API_URL,
    AnthropicGateway,
    CompletionGateway,
    OpenAICompatibleGateway,
    create_gateway,
)
from coachbot.config import Settings
from coachbot.errors import TransportError, UpstreamError

API_URL = "https://llm.example.com/v1/chat/completions"
TURNS = [Turn("system", "be kind"), Turn("user", "hello")]


def _gateway(handler) -> OpenAICompatibleGateway:
    return OpenAICompatibleGateway(
        API_URL,
        "test-key",
        "test-model",
        temperature=0.5,
        max_tokens=64,
        transport=httpx.MockTransport(handler),
    )


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# -- OpenAI-compatible -----------------------------------------------------------


async def test_returns_completion_text() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("hi there"))

    gw = _gateway(handler)
    try:
        assert await gw.complete(TURNS) == "hi there"
    finally:
        await gw.close()

    request = seen[0]
    assert str(request.url) == API_URL
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body == {
        "model": "test-model",
        "messages": [
            {"role": "system", "content": "be kind"},
            {"role": "user", "content": "hello"},
        ],
        "temperature": 0.5,
        "max_tokens": 64,
    }


@pytest.mark.parametrize("status", [400, 401, 429, 500, 503])
async def test_non_success_raises_upstream_error(status: int) -> None:
    gw = _gateway(lambda request: httpx.Response(status, text="provider says no"))
    try:
        with pytest.raises(UpstreamError) as exc_info:
            await gw.complete(TURNS)
    finally:
        await gw.close()
    assert exc_info.value.status_code == status
    assert exc_info.value.body == "provider says no"


@pytest.mark.parametrize(
    "payload",
    [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": None}}]}],
)
async def test_missing_completion_field_is_upstream_error(payload: dict) -> None:
    gw = _gateway(lambda request: httpx.Response(200, json=payload))
    try:
        with pytest.raises(UpstreamError) as exc_info:
            await gw.complete(TURNS)
    finally:
        await gw.close()
    assert exc_info.value.status_code == 200


async def test_non_json_body_is_upstream_error() -> None:
    gw = _gateway(lambda request: httpx.Response(200, text="<html>oops</html>"))
    try:
        with pytest.raises(UpstreamError):
            await gw.complete(TURNS)
    finally:
        await gw.close()


async def test_network_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gw = _gateway(handler)
    try:
        with pytest.raises(TransportError):
            await gw.complete(TURNS)
    finally:
        await gw.close()


async def test_timeout_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    gw = _gateway(handler)
    try:
        with pytest.raises(TransportError):
            await gw.complete(TURNS)
    finally:
        await gw.close()


async def test_no_retry_on_failure() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="busy")

    gw = _gateway(handler)
    try:
        with pytest.raises(UpstreamError):
            await gw.complete(TURNS)
    finally:
        await gw.close()
    assert len(calls) == 1


# -- Anthropic -----------------------------------------------------------------


def _anthropic_gateway(create: AsyncMock) -> AnthropicGateway:
    gw = AnthropicGateway("test-key", "claude-test", max_tokens=64)
    gw._client.messages.create = create
    return gw


async def test_anthropic_splits_system_turn() -> None:
    response = SimpleNamespace(content=[SimpleNamespace(type="text", text="hello back")])
    create = AsyncMock(return_value=response)
    gw = _anthropic_gateway(create)

    assert await gw.complete(TURNS) == "hello back"
    kwargs = create.call_args.kwargs
    assert kwargs["system"] == "be kind"
    assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
    assert kwargs["model"] == "claude-test"
    assert kwargs["max_tokens"] == 64


async def test_anthropic_status_error_is_upstream_error() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    error = anthropic.APIStatusError(
        "overloaded",
        response=httpx.Response(529, text="overloaded", request=request),
        body=None,
    )
    gw = _anthropic_gateway(AsyncMock(side_effect=error))

    with pytest.raises(UpstreamError) as exc_info:
        await gw.complete(TURNS)
    assert exc_info.value.status_code == 529


async def test_anthropic_timeout_is_transport_error() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    gw = _anthropic_gateway(AsyncMock(side_effect=anthropic.APITimeoutError(request=request)))

    with pytest.raises(TransportError):
        await gw.complete(TURNS)


async def test_anthropic_empty_reply_is_upstream_error() -> None:
    gw = _anthropic_gateway(AsyncMock(return_value=SimpleNamespace(content=[])))
    with pytest.raises(UpstreamError):
        await gw.complete(TURNS)


def test_anthropic_client_does_not_retry() -> None:
    gw = AnthropicGateway("test-key", "claude-test")
    assert gw._client.max_retries == 0


# -- factory -------------------------------------------------------------------


async def test_create_gateway_defaults_to_deepseek() -> None:
    gw = create_gateway(Settings(llm_api_key="k"))
    try:
        assert isinstance(gw, OpenAICompatibleGateway)
        assert isinstance(gw, CompletionGateway)
        assert gw._api_url == DEEPSEEK_API_URL
    finally:
        await gw.close()


async def test_create_gateway_anthropic() -> None:
    gw = create_gateway(Settings(llm_provider="anthropic", llm_api_key="k", llm_model="m"))
    try:
        assert isinstance(gw, AnthropicGateway)
    finally:
        await gw.close()

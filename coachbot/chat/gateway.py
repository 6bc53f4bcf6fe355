"""Completion gateway — one ordered turn list in, one reply out.

Two providers share the ``CompletionGateway`` protocol:

- ``OpenAICompatibleGateway`` posts to any ``/chat/completions`` style
  endpoint (DeepSeek by default) with httpx.
- ``AnthropicGateway`` uses the Anthropic SDK; the system turn is passed as
  the ``system`` parameter.

Neither retries. Non-success statuses raise ``UpstreamError``; network
failures and timeouts raise ``TransportError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import anthropic
import httpx

from coachbot.chat.context import ROLE_SYSTEM
from coachbot.errors import TransportError, UpstreamError

if TYPE_CHECKING:
    from coachbot.chat.context import Turn
    from coachbot.config import Settings

logger = logging.getLogger(__name__)

DEEPSEEK_API_URL = "https://api.deepseek.com/v1/chat/completions"


@runtime_checkable
class CompletionGateway(Protocol):
    """Protocol that all completion providers must satisfy."""

    async def complete(self, turns: list[Turn]) -> str:
        """Return the assistant reply for *turns*."""
        ...

    async def close(self) -> None:
        ...


class OpenAICompatibleGateway:
    """Chat completions over plain HTTP."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        *,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def complete(self, turns: list[Turn]) -> str:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [t.to_api() for t in turns],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        try:
            resp = await self._client.post(self._api_url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Completion request timed out")
            raise TransportError("completion request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Completion request failed: %s", exc)
            raise TransportError(f"completion request failed: {exc}") from exc

        if not resp.is_success:
            logger.error(
                "Completion failed: status=%d body=%s", resp.status_code, resp.text[:200]
            )
            raise UpstreamError(resp.status_code, resp.text)

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("Completion response missing content: %s", resp.text[:200])
            raise UpstreamError(resp.status_code, resp.text) from exc
        if not isinstance(content, str):
            raise UpstreamError(resp.status_code, resp.text)
        return content

    async def close(self) -> None:
        await self._client.aclose()


class AnthropicGateway:
    """Messages API via the Anthropic SDK."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        base_url: str | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(self, turns: list[Turn]) -> str:
        system = "\n\n".join(t.content for t in turns if t.role == ROLE_SYSTEM)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [t.to_api() for t in turns if t.role != ROLE_SYSTEM],
        }
        if system:
            kwargs["system"] = system
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            logger.error("Completion failed: status=%d", exc.status_code)
            raise UpstreamError(exc.status_code, exc.response.text) from exc
        except anthropic.APIConnectionError as exc:
            # APITimeoutError is a subclass.
            logger.warning("Completion request failed: %s", exc)
            raise TransportError(f"completion request failed: {exc}") from exc

        text = "".join(b.text for b in response.content if b.type == "text")
        if not text:
            raise UpstreamError(200, "empty completion")
        return text

    async def close(self) -> None:
        await self._client.close()


def create_gateway(settings: Settings) -> CompletionGateway:
    """Build the provider named by ``LLM_PROVIDER``."""
    if settings.get_llm_provider() == "anthropic":
        logger.info("Completion provider: anthropic (%s)", settings.llm_model)
        return AnthropicGateway(
            settings.llm_api_key,
            settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            base_url=settings.llm_api_url or None,
        )
    api_url = settings.llm_api_url or DEEPSEEK_API_URL
    logger.info("Completion provider: %s (%s)", api_url, settings.llm_model)
    return OpenAICompatibleGateway(
        api_url,
        settings.llm_api_key,
        settings.llm_model,
        timeout=settings.llm_timeout_seconds,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )

"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from coachbot.auth.tokens import TokenService
from coachbot.chat.context import ContextConfig
from coachbot.chat.orchestrator import ChatService
from coachbot.store.memory import MemoryCredentialStore

if TYPE_CHECKING:
    from coachbot.chat.context import Turn

TEST_SECRET = "test-secret-0123456789abcdefghijklmnop"
SYSTEM_PROMPT = "You are a helpful coach."


class FakeGateway:
    """CompletionGateway stand-in that records every turn list it receives."""

    def __init__(self, reply: str = "hi there", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[list[Turn]] = []
        self.closed = False

    async def complete(self, turns: list[Turn]) -> str:
        self.calls.append(list(turns))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.reply

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _fast_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep bcrypt cheap in tests."""
    monkeypatch.setattr("coachbot.auth.passwords.PASSWORD_BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("coachbot.config.settings.turso_database_url", "")


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def context_config() -> ContextConfig:
    return ContextConfig(system_prompt=SYSTEM_PROMPT, max_turns=50, max_chars=24000)


@pytest.fixture
def chat(store, tokens, gateway, context_config) -> ChatService:
    return ChatService(store, tokens, gateway, context_config)

"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a life coach. Help me work through problems step by step, "
    "asking only one question at a time. Ask about the definitions of the "
    "underlying concepts, first agree on the topic and the goal of the "
    "conversation, and leave the direction of the conversation to me. "
    "Keep every reply under 40 words and do not use bullet points."
)


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Coachbot configuration. All values come from environment variables."""

    # Tokens
    jwt_secret: str = Field(default="")
    token_ttl_hours: int = Field(default=24)

    # Store
    store_backend: str = Field(default="sql")
    database_path: Path = Field(default=Path("data/coachbot.db"))

    # Turso (hosted libSQL) — when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Completion provider
    llm_provider: str = Field(default="openai")
    llm_api_key: str = Field(default="")
    llm_api_url: str = Field(default="")
    llm_model: str = Field(default="deepseek-chat")
    llm_temperature: float = Field(default=0.7)
    llm_max_tokens: int = Field(default=1024)
    llm_timeout_seconds: float = Field(default=30.0)

    # Conversation
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    context_max_turns: int = Field(default=50)
    context_max_chars: int = Field(default=24000)
    history_limit: int = Field(default=50)
    max_message_chars: int = Field(default=8000)

    # Google sign-in
    google_client_id: str = Field(default="")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5001)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_store_backend(self) -> str:
        """Normalise STORE_BACKEND, falling back to ``sql`` for unknown values."""
        backend = self.store_backend.strip().lower()
        return backend if backend in {"sql", "memory"} else "sql"

    def get_llm_provider(self) -> str:
        """Normalise LLM_PROVIDER, falling back to ``openai`` for unknown values."""
        provider = self.llm_provider.strip().lower()
        return provider if provider in {"openai", "anthropic"} else "openai"


settings = Settings()

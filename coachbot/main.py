"""Coachbot entry point."""

import logging
from datetime import timedelta

from aiohttp import web

from coachbot.auth.service import AuthService
from coachbot.auth.tokens import TokenService
from coachbot.chat.context import ContextConfig
from coachbot.chat.gateway import create_gateway
from coachbot.chat.orchestrator import ChatService
from coachbot.config import Settings, settings
from coachbot.store import create_store
from coachbot.web.server import create_app

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


def build_app(config: Settings) -> web.Application:
    """Wire the store, token service and gateway into the web application.

    Each collaborator is created once here and closed on app cleanup.
    """
    store = create_store(config)
    tokens = TokenService(config.jwt_secret, ttl=timedelta(hours=config.token_ttl_hours))
    gateway = create_gateway(config)

    auth = AuthService(store, tokens, google_client_id=config.google_client_id)
    chat = ChatService(
        store,
        tokens,
        gateway,
        ContextConfig.from_settings(config),
        max_message_chars=config.max_message_chars,
        history_limit=config.history_limit,
    )
    app = create_app(auth, chat)

    async def _close(_app: web.Application) -> None:
        await gateway.close()
        await store.close()
        logger.info("Coachbot stopped")

    app.on_cleanup.append(_close)
    return app


def main() -> None:
    """Start the HTTP server."""
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is empty — refusing to start")
        raise SystemExit(1)
    if not settings.llm_api_key:
        logger.warning("LLM_API_KEY is empty — completions will fail")

    app = build_app(settings)
    logger.info("Starting Coachbot on %s:%d", settings.host, settings.port)
    web.run_app(app, host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()

"""Chat request cycle: authenticate, assemble context, complete, persist."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coachbot.auth.session import Identity, authenticate
from coachbot.chat.context import build_context
from coachbot.errors import ChatError, ValidationError
from coachbot.store.models import ROLE_ASSISTANT, ROLE_USER, utc_now_iso

if TYPE_CHECKING:
    from coachbot.auth.tokens import TokenService
    from coachbot.chat.context import ContextConfig
    from coachbot.chat.gateway import CompletionGateway
    from coachbot.store.base import CredentialStore
    from coachbot.store.models import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    """Outcome of one successful completion.

    ``persisted`` is False when the reply was produced but could not be
    stored; the user's own turn is stored either way.
    """

    reply: str
    user_message: Message
    assistant_message: Message | None

    @property
    def persisted(self) -> bool:
        return self.assistant_message is not None


class ChatService:
    """Runs the send, history and search operations for authenticated callers.

    Holds no per-request state and takes no locks: two concurrent sends from
    the same user may both read the same prior history.
    """

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenService,
        gateway: CompletionGateway,
        context_config: ContextConfig,
        *,
        max_message_chars: int = 8000,
        history_limit: int | None = 50,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._gateway = gateway
        self._context_config = context_config
        self._max_message_chars = max_message_chars
        self._history_limit = history_limit

    def authenticate(self, headers: Mapping[str, str]) -> Identity:
        """Resolve the caller or raise ``Unauthorized``."""
        return authenticate(headers, self._tokens)

    def _validate(self, text: str) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("message is required")
        if len(text) > self._max_message_chars:
            raise ValidationError(f"message exceeds {self._max_message_chars} characters")
        return text

    async def send(self, headers: Mapping[str, str], text: str) -> SendResult:
        """Handle one chat message.

        The user turn is written before the completion result is known, so a
        provider failure leaves it in history without an assistant reply.
        """
        identity = self.authenticate(headers)
        text = self._validate(text)

        turns = await build_context(self._store, identity.user_id, text, self._context_config)
        user_message = await self._store.append_message(identity.user_id, ROLE_USER, text)

        reply = await self._gateway.complete(turns)

        # Never earlier than the user turn, even if the wall clock stepped back.
        created_at = max(utc_now_iso(), user_message.created_at)
        try:
            assistant_message = await self._store.append_message(
                identity.user_id, ROLE_ASSISTANT, reply, created_at=created_at
            )
        except ChatError:
            logger.exception(
                "Reply generated but not persisted: user=%s message=%s",
                identity.user_id,
                user_message.id,
            )
            assistant_message = None

        logger.info(
            "Chat turn: user=%s context=%d turns reply=%d chars",
            identity.user_id,
            len(turns),
            len(reply),
        )
        return SendResult(
            reply=reply,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    def _resolve_limit(self, limit: int | None) -> int | None:
        if limit is None:
            return self._history_limit
        if limit <= 0:
            raise ValidationError("limit must be positive")
        return limit

    async def history(
        self, headers: Mapping[str, str], limit: int | None = None
    ) -> list[Message]:
        """The caller's own messages, oldest first."""
        identity = self.authenticate(headers)
        return await self._store.list_messages(
            identity.user_id, limit=self._resolve_limit(limit)
        )

    async def search(
        self, headers: Mapping[str, str], query: str, limit: int | None = None
    ) -> list[Message]:
        """The caller's messages containing *query*, oldest first.

        Matching ignores ASCII case; *limit* keeps the most recent matches.
        """
        identity = self.authenticate(headers)
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("search query is required")
        if len(query) > self._max_message_chars:
            raise ValidationError(f"search query exceeds {self._max_message_chars} characters")
        messages = await self._store.search_messages(
            identity.user_id, query.strip(), limit=self._resolve_limit(limit)
        )
        logger.debug("Search: user=%s matches=%d", identity.user_id, len(messages))
        return messages

"""Prompt context assembly with a bounded, FIFO-evicted window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coachbot.store.models import ROLE_USER

if TYPE_CHECKING:
    from coachbot.config import Settings
    from coachbot.store.base import CredentialStore

logger = logging.getLogger(__name__)

ROLE_SYSTEM = "system"


@dataclass(frozen=True)
class Turn:
    """A single conversation turn."""

    role: str  # "system", "user" or "assistant"
    content: str

    def to_api(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ContextConfig:
    """Window limits and the fixed system instruction.

    ``max_turns`` counts every turn, including the system turn and the new
    user turn. ``max_chars`` bounds the summed ``content`` length.
    """

    system_prompt: str
    max_turns: int = 50
    max_chars: int = 24000

    @classmethod
    def from_settings(cls, settings: Settings) -> ContextConfig:
        return cls(
            system_prompt=settings.system_prompt,
            max_turns=settings.context_max_turns,
            max_chars=settings.context_max_chars,
        )


def bound_turns(turns: list[Turn], max_turns: int, max_chars: int) -> list[Turn]:
    """Drop the oldest middle turns until the window fits.

    The first (system) and last (new user) turns are always kept, even when
    the two of them alone exceed the limits.
    """
    if len(turns) <= 2:
        return list(turns)
    head, middle, tail = turns[0], list(turns[1:-1]), turns[-1]

    total_chars = sum(len(t.content) for t in turns)
    dropped = 0
    while middle and (len(middle) + 2 > max_turns or total_chars > max_chars):
        evicted = middle.pop(0)
        total_chars -= len(evicted.content)
        dropped += 1

    if dropped:
        logger.debug("Context window: evicted %d oldest turn(s)", dropped)
    return [head, *middle, tail]


async def build_context(
    store: CredentialStore,
    user_id: str,
    new_user_text: str,
    config: ContextConfig,
) -> list[Turn]:
    """Assemble ``[system, *history, user(new_user_text)]`` for one request.

    Only reads from the store. A user with no history gets exactly the
    system turn and the new user turn.
    """
    fetch_limit = max(config.max_turns - 2, 0)
    history = await store.list_messages(user_id, limit=fetch_limit)
    history = sorted(history, key=lambda m: m.sort_key)

    turns = [Turn(ROLE_SYSTEM, config.system_prompt)]
    turns.extend(Turn(m.role, m.content) for m in history)
    turns.append(Turn(ROLE_USER, new_user_text))
    return bound_turns(turns, config.max_turns, config.max_chars)

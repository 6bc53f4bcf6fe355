"""Conversation core — context assembly, completion, orchestration."""

from coachbot.chat.context import ContextConfig, Turn, bound_turns, build_context
from coachbot.chat.gateway import CompletionGateway, create_gateway
from coachbot.chat.orchestrator import ChatService, SendResult

__all__ = [
    "ChatService",
    "CompletionGateway",
    "ContextConfig",
    "SendResult",
    "Turn",
    "bound_turns",
    "build_context",
    "create_gateway",
]

"""Credential store — user and message persistence behind one protocol."""

from coachbot.config import Settings
from coachbot.store.base import CredentialStore
from coachbot.store.memory import MemoryCredentialStore
from coachbot.store.models import Message, User
from coachbot.store.sql import SqlCredentialStore


def create_store(settings: Settings) -> CredentialStore:
    """Build the backend named by ``STORE_BACKEND``."""
    if settings.get_store_backend() == "memory":
        return MemoryCredentialStore()
    return SqlCredentialStore(config=settings)


__all__ = [
    "CredentialStore",
    "MemoryCredentialStore",
    "Message",
    "SqlCredentialStore",
    "User",
    "create_store",
]

"""CredentialStore protocol — interface for user and message persistence."""

from typing import Protocol, runtime_checkable

from coachbot.store.models import Message, User


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol that every storage backend must satisfy.

    Implementations own their atomicity: ``create_user`` must enforce email
    uniqueness without a read-then-write race, and ``append_message`` must
    assign ids in insertion order.
    """

    async def find_user_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup."""
        ...

    async def find_user_by_id(self, user_id: str) -> User | None:
        ...

    async def find_user_by_google_id(self, google_id: str) -> User | None:
        ...

    async def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        *,
        google_id: str | None = None,
        picture: str | None = None,
    ) -> User:
        """Insert a user.

        Raises ``Conflict`` if the email is taken or *google_id* is already
        linked to another account.
        """
        ...

    async def append_message(
        self,
        user_id: str,
        role: str,
        content: str,
        *,
        created_at: str | None = None,
    ) -> Message:
        """Append one message. Raises ``StoreError`` if the store is unavailable."""
        ...

    async def list_messages(self, user_id: str, limit: int | None = None) -> list[Message]:
        """Messages in ascending ``(created_at, id)`` order.

        With *limit*, only the most recent *limit* messages are returned
        (still ascending).
        """
        ...

    async def search_messages(
        self, user_id: str, query: str, limit: int | None = None
    ) -> list[Message]:
        """The owner's messages containing *query*, ignoring ASCII case.

        Same ordering and *limit* semantics as ``list_messages``.
        """
        ...

    async def close(self) -> None:
        ...

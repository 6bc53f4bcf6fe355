"""Error taxonomy shared by the services and the HTTP layer.

Every failure a request can end in is one of these. Each class carries the
HTTP status it maps to and the message the client is allowed to see; the
constructor message is internal and only ever logged.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for all request-level failures."""

    status: int = 500
    public_message: str = "internal error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.public_message)


class ValidationError(ChatError):
    """Malformed or missing request fields."""

    status = 400
    public_message = "invalid request"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        # Field-level problems are safe to echo back.
        if message:
            self.public_message = message


class Conflict(ChatError):
    """The email address is already registered."""

    status = 400
    public_message = "email already registered"


class Unauthorized(ChatError):
    """Missing, invalid, expired or tampered credentials."""

    status = 401
    public_message = "unauthorized"


class UpstreamError(ChatError):
    """The completion provider answered with a non-success status."""

    status = 502
    public_message = "The assistant is unavailable. Please try again."

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"upstream returned {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class TransportError(ChatError):
    """The completion provider could not be reached or timed out."""

    status = 500
    public_message = "The assistant is unavailable. Please try again."


class StoreError(ChatError):
    """The credential store failed."""

    status = 500
    public_message = "internal error"

"""Signed, time-limited identity tokens (JWT, HS256)."""

from __future__ import annotations

import binascii
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.utils import base64url_decode, base64url_encode

from coachbot.errors import Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(hours=24)
REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _is_canonical(token: str) -> bool:
    """True if every segment is the canonical base64url form of its bytes.

    The last character of a base64url segment can carry unused bits, so two
    different strings may decode to the same bytes. Requiring a round-trip
    match means any edited character is rejected.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        return all(
            base64url_encode(base64url_decode(segment)).decode("ascii") == segment
            for segment in segments
        )
    except (binascii.Error, ValueError, UnicodeError):
        return False


class TokenService:
    """Issues and verifies bearer tokens.

    The secret is process-wide; rotating it invalidates every token issued
    under the old one. *clock* is injectable so expiry can be tested.
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not secret:
            msg = "JWT_SECRET is not configured"
            raise ValueError(msg)
        self._secret = secret
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user_id: str) -> str:
        """Sign ``{sub, iat, exp}`` for *user_id*."""
        issued_at = int(self._clock().timestamp())
        payload: dict[str, Any] = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + int(self._ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the user id carried by *token*, or raise ``Unauthorized``."""
        if not token or not _is_canonical(token):
            raise Unauthorized("malformed token")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                # Time claims are checked below against the injected clock.
                options={"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise Unauthorized(f"invalid token: {exc}") from exc

        exp = claims.get("exp")
        user_id = claims.get("sub")
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise Unauthorized("invalid exp claim")
        if not isinstance(user_id, str) or not user_id:
            raise Unauthorized("invalid sub claim")
        if int(self._clock().timestamp()) >= exp:
            raise Unauthorized("token expired")
        return user_id

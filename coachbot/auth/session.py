"""Bearer-token authentication for incoming requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coachbot.errors import Unauthorized

if TYPE_CHECKING:
    from coachbot.auth.tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""

    user_id: str


def _bearer_token(headers: Mapping[str, str]) -> str:
    header = headers.get("Authorization") or headers.get("authorization") or ""
    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise Unauthorized("missing or malformed Authorization header")
    return token


def authenticate(headers: Mapping[str, str], tokens: TokenService) -> Identity:
    """Resolve the caller from ``Authorization: Bearer <token>``.

    Every failure raises the same ``Unauthorized``; the specific reason is
    only logged at debug level.
    """
    try:
        user_id = tokens.verify(_bearer_token(headers))
    except Unauthorized as exc:
        logger.debug("Authentication rejected: %s", exc)
        raise Unauthorized() from None
    return Identity(user_id=user_id)

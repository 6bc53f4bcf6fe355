"""Google ID-token verification for "Sign in with Google"."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import id_token

from coachbot.errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoogleIdentity:
    """Claims taken from a verified Google ID token."""

    subject: str
    email: str
    name: str
    picture: str | None = None


def _verify(credential: str, client_id: str) -> dict[str, Any]:
    return id_token.verify_oauth2_token(credential, Request(), client_id)


async def verify_google_credential(credential: str, client_id: str) -> GoogleIdentity:
    """Verify *credential* against *client_id*; raise ``Unauthorized`` on failure.

    Signature and audience checks are done by ``google-auth``, which fetches
    Google's public certificates (blocking, so it runs in a worker thread).
    """
    if not client_id:
        raise Unauthorized("GOOGLE_CLIENT_ID is not configured")
    if not credential:
        raise Unauthorized("missing Google credential")
    try:
        claims = await asyncio.to_thread(_verify, credential, client_id)
    except (ValueError, GoogleAuthError) as exc:
        raise Unauthorized(f"Google token rejected: {exc}") from exc

    email = claims.get("email") or ""
    subject = claims.get("sub") or ""
    if not email or not subject:
        raise Unauthorized("Google token missing sub/email")
    if claims.get("email_verified") is False:
        raise Unauthorized("Google email not verified")
    return GoogleIdentity(
        subject=subject,
        email=email,
        name=claims.get("name") or email.split("@")[0],
        picture=claims.get("picture"),
    )

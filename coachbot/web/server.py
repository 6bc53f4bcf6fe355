"""aiohttp application exposing the auth and chat endpoints.

Every response is JSON and carries permissive CORS headers. Service
failures are mapped to status codes by ``_error_middleware``; only the
error's public message ever reaches the client.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from aiohttp import web
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from coachbot.auth.service import AuthResult, AuthService
from coachbot.chat.orchestrator import ChatService
from coachbot.errors import ChatError, ValidationError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

AUTH_SERVICE = web.AppKey("auth_service", AuthService)
CHAT_SERVICE = web.AppKey("chat_service", ChatService)

_Body = TypeVar("_Body", bound=BaseModel)


# -- Request bodies ------------------------------------------------------------


class SignupBody(BaseModel):
    email: str
    password: str
    name: str = ""


class LoginBody(BaseModel):
    email: str
    password: str


class GoogleBody(BaseModel):
    credential: str


class SendBody(BaseModel):
    message: str


async def _parse(request: web.Request, model: type[_Body]) -> _Body:
    try:
        payload: Any = await request.json()
    except Exception:
        logger.warning("Bad request: invalid JSON (%s %s)", request.method, request.path)
        raise ValidationError("invalid JSON") from None
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationError(f"{field}: {first['msg']}") from None


def _auth_payload(result: AuthResult) -> dict[str, Any]:
    return {"token": result.token, "user": result.user.to_public()}


# -- Middleware ----------------------------------------------------------------


@web.middleware
async def _cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and stamp CORS headers on every response."""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS, content_type="application/json")
    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def _error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map failures to JSON error responses without leaking internals."""
    try:
        return await handler(request)
    except ChatError as exc:
        if exc.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        return web.json_response({"error": exc.public_message}, status=exc.status)
    except web.HTTPException as exc:
        return web.json_response({"error": exc.reason}, status=exc.status)
    except Exception:
        logger.exception("Unhandled error: %s %s", request.method, request.path)
        return web.json_response({"error": "internal error"}, status=500)


# -- Handlers ------------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _signup(request: web.Request) -> web.Response:
    body = await _parse(request, SignupBody)
    result = await request.app[AUTH_SERVICE].signup(body.email, body.password, body.name)
    return web.json_response(_auth_payload(result), status=201)


async def _login(request: web.Request) -> web.Response:
    body = await _parse(request, LoginBody)
    result = await request.app[AUTH_SERVICE].login(body.email, body.password)
    return web.json_response(_auth_payload(result))


async def _google_login(request: web.Request) -> web.Response:
    body = await _parse(request, GoogleBody)
    result = await request.app[AUTH_SERVICE].google_login(body.credential)
    return web.json_response(_auth_payload(result))


async def _send(request: web.Request) -> web.Response:
    chat = request.app[CHAT_SERVICE]
    # Authenticate before looking at the body so bad tokens always get 401.
    chat.authenticate(request.headers)
    body = await _parse(request, SendBody)
    result = await chat.send(request.headers, body.message)
    return web.json_response({"response": result.reply, "persisted": result.persisted})


def _limit_param(request: web.Request) -> int | None:
    raw_limit = request.query.get("limit")
    if not raw_limit:
        return None
    try:
        return int(raw_limit)
    except ValueError:
        raise ValidationError("limit must be an integer") from None


async def _history(request: web.Request) -> web.Response:
    chat = request.app[CHAT_SERVICE]
    chat.authenticate(request.headers)
    messages = await chat.history(request.headers, limit=_limit_param(request))
    return web.json_response({"history": [m.to_public() for m in messages]})


async def _search(request: web.Request) -> web.Response:
    """GET /chat/search?q=... — the caller's matching messages."""
    chat = request.app[CHAT_SERVICE]
    chat.authenticate(request.headers)
    messages = await chat.search(
        request.headers, request.query.get("q", ""), limit=_limit_param(request)
    )
    return web.json_response({"results": [m.to_public() for m in messages]})


def create_app(auth: AuthService, chat: ChatService) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_cors_middleware, _error_middleware])
    app[AUTH_SERVICE] = auth
    app[CHAT_SERVICE] = chat
    app.router.add_get("/health", _health)
    app.router.add_post("/auth/signup", _signup)
    app.router.add_post("/auth/login", _login)
    app.router.add_post("/auth/google", _google_login)
    app.router.add_post("/chat/send", _send)
    app.router.add_get("/chat/history", _history)
    app.router.add_get("/chat/search", _search)
    return app

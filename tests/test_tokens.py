"""Tests for TokenService — issue/verify, expiry, tampering."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from coachbot.auth.tokens import TokenService
from coachbot.errors import Unauthorized

SECRET = "test-secret-0123456789abcdefghijklmnop"
T0 = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock(T0)


@pytest.fixture
def service(clock: _Clock) -> TokenService:
    return TokenService(SECRET, clock=clock)


# -- issue / verify ------------------------------------------------------------


def test_verify_returns_user_id(service: TokenService) -> None:
    token = service.issue("user-1")
    assert service.verify(token) == "user-1"


def test_payload_carries_iat_and_24h_expiry(service: TokenService) -> None:
    token = service.issue("user-1")
    claims = jwt.decode(token, options={"verify_signature": False})
    assert claims["sub"] == "user-1"
    assert claims["iat"] == int(T0.timestamp())
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError):
        TokenService("")


# -- expiry --------------------------------------------------------------------


def test_valid_just_before_expiry(service: TokenService, clock: _Clock) -> None:
    token = service.issue("user-1")
    clock.now = T0 + timedelta(hours=24) - timedelta(seconds=1)
    assert service.verify(token) == "user-1"


def test_rejected_at_expiry(service: TokenService, clock: _Clock) -> None:
    token = service.issue("user-1")
    clock.now = T0 + timedelta(hours=24)
    with pytest.raises(Unauthorized):
        service.verify(token)


def test_rejected_long_after_expiry(service: TokenService, clock: _Clock) -> None:
    token = service.issue("user-1")
    clock.now = T0 + timedelta(days=30)
    with pytest.raises(Unauthorized):
        service.verify(token)


def test_custom_ttl(clock: _Clock) -> None:
    service = TokenService(SECRET, ttl=timedelta(minutes=5), clock=clock)
    token = service.issue("user-1")
    clock.now = T0 + timedelta(minutes=5)
    with pytest.raises(Unauthorized):
        service.verify(token)


# -- tampering / forgery -------------------------------------------------------


def test_every_single_character_edit_is_rejected(service: TokenService) -> None:
    token = service.issue("user-1")
    for i, ch in enumerate(token):
        replacement = "A" if ch != "A" else "B"
        tampered = token[:i] + replacement + token[i + 1 :]
        with pytest.raises(Unauthorized):
            service.verify(tampered)


def test_last_signature_character_slack_bits_rejected(service: TokenService) -> None:
    """Characters that decode to the same bytes must still be rejected."""
    token = service.issue("user-1")
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
    for ch in alphabet:
        if ch == token[-1]:
            continue
        with pytest.raises(Unauthorized):
            service.verify(token[:-1] + ch)


def test_rotated_secret_invalidates_tokens(service: TokenService, clock: _Clock) -> None:
    token = service.issue("user-1")
    rotated = TokenService("rotated-secret-0123456789abcdefghijklm", clock=clock)
    with pytest.raises(Unauthorized):
        rotated.verify(token)


def test_swapped_payload_is_rejected(service: TokenService) -> None:
    header, _, signature = service.issue("user-1").split(".")
    _, other_payload, _ = service.issue("user-2").split(".")
    with pytest.raises(Unauthorized):
        service.verify(f"{header}.{other_payload}.x{signature[1:]}")
    # Valid signature from user-1, payload from user-2
    with pytest.raises(Unauthorized):
        service.verify(f"{header}.{other_payload}.{signature}")


def test_unsigned_token_is_rejected(service: TokenService) -> None:
    payload = {"sub": "user-1", "iat": int(T0.timestamp()), "exp": int(T0.timestamp()) + 60}
    token = jwt.encode(payload, None, algorithm="none")
    with pytest.raises(Unauthorized):
        service.verify(token)


# -- malformed claims ------------------------------------------------------------


def test_missing_exp_is_rejected(service: TokenService) -> None:
    token = jwt.encode({"sub": "user-1", "iat": int(T0.timestamp())}, SECRET, algorithm="HS256")
    with pytest.raises(Unauthorized):
        service.verify(token)


def test_missing_sub_is_rejected(service: TokenService) -> None:
    now = int(T0.timestamp())
    token = jwt.encode({"iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
    with pytest.raises(Unauthorized):
        service.verify(token)


def test_non_integer_exp_is_rejected(service: TokenService) -> None:
    now = int(T0.timestamp())
    token = jwt.encode(
        {"sub": "user-1", "iat": now, "exp": "tomorrow"}, SECRET, algorithm="HS256"
    )
    with pytest.raises(Unauthorized):
        service.verify(token)


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "not a token at all"])
def test_garbage_is_rejected(service: TokenService, token: str) -> None:
    with pytest.raises(Unauthorized):
        service.verify(token)

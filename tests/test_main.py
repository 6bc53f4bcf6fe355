"""Tests for application wiring."""

from pathlib import Path

from aiohttp.test_utils import TestClient, TestServer

from coachbot.config import Settings
from coachbot.main import build_app
from coachbot.store import MemoryCredentialStore, SqlCredentialStore, create_store


def test_create_store_selects_backend() -> None:
    assert isinstance(create_store(Settings(store_backend="memory")), MemoryCredentialStore)
    assert isinstance(create_store(Settings()), SqlCredentialStore)


async def test_sql_store_uses_the_given_settings(tmp_path: Path) -> None:
    db_path = tmp_path / "custom" / "coachbot.db"
    store = create_store(Settings(database_path=db_path))
    try:
        await store.create_user("a@x.com", None, "Ann")
    finally:
        await store.close()

    assert db_path.exists()
    reopened = SqlCredentialStore(db_path=db_path)
    try:
        assert await reopened.find_user_by_email("a@x.com") is not None
    finally:
        await reopened.close()


async def test_build_app_serves_signup() -> None:
    config = Settings(
        jwt_secret="test-secret-0123456789abcdefghijklmnop",
        store_backend="memory",
        llm_api_key="k",
    )
    client = TestClient(TestServer(build_app(config)))
    await client.start_server()
    try:
        resp = await client.post(
            "/auth/signup", json={"email": "a@x.com", "password": "pw1", "name": "Ann"}
        )
        assert resp.status == 201
        assert "token" in await resp.json()
    finally:
        await client.close()

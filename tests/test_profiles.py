"""Registration, profile lookup and the follow relation that feeds are built on."""
import pytest
from httpx import AsyncClient


async def _register(client: AsyncClient, username: str, email: str | None = None):
    return await client.post("/api/users", json={
        "user": {"username": username, "email": email or f"{username}@example.com"},
    })


@pytest.mark.asyncio
async def test_register_user(async_client: AsyncClient):
    resp = await _register(async_client, "alice")
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["username"] == "alice"
    assert user["email"] == "alice@example.com"
    assert isinstance(user["id"], int)


@pytest.mark.asyncio
async def test_duplicate_username_returns_409(async_client: AsyncClient):
    assert (await _register(async_client, "dup", "one@example.com")).status_code == 201
    resp = await _register(async_client, "dup", "two@example.com")
    assert resp.status_code == 409
    assert "username" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_duplicate_email_returns_409(async_client: AsyncClient):
    await _register(async_client, "first", "same@example.com")
    resp = await _register(async_client, "second", "same@example.com")
    assert resp.status_code == 409
    assert "email" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_follow_and_unfollow(async_client: AsyncClient):
    alice_id = (await _register(async_client, "alice")).json()["user"]["id"]
    await _register(async_client, "bob")
    alice = {"X-User-Id": str(alice_id)}

    for _ in range(2):
        resp = await async_client.post("/api/profiles/bob/follow", headers=alice)
        assert resp.status_code == 200
        assert resp.json()["profile"]["following"] is True

    resp = await async_client.get("/api/profiles/bob", headers=alice)
    assert resp.json()["profile"]["following"] is True
    resp = await async_client.get("/api/profiles/bob")
    assert resp.json()["profile"]["following"] is False

    resp = await async_client.delete("/api/profiles/bob/follow", headers=alice)
    assert resp.status_code == 200
    assert resp.json()["profile"]["following"] is False


@pytest.mark.asyncio
async def test_follow_errors(async_client: AsyncClient):
    alice_id = (await _register(async_client, "alice")).json()["user"]["id"]
    alice = {"X-User-Id": str(alice_id)}

    assert (await async_client.post("/api/profiles/alice/follow")).status_code == 401
    assert (await async_client.post("/api/profiles/ghost/follow", headers=alice)).status_code == 404
    assert (await async_client.post("/api/profiles/alice/follow", headers=alice)).status_code == 400
    assert (await async_client.get("/api/profiles/ghost")).status_code == 404

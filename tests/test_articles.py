"""
Article endpoint tests: the HTTP contract of the articles resource:
status codes, wire field names, filters, pagination, favorites and feeds.

Each test builds the users and articles it needs through the API.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _register(client: AsyncClient, username: str) -> dict:
    resp = await client.post("/api/users", json={
        "user": {"username": username, "email": f"{username}@example.com"},
    })
    assert resp.status_code == 201
    user_id = resp.json()["user"]["id"]
    return {"X-User-Id": str(user_id)}


async def _create_article(client: AsyncClient, headers: dict, title: str, **extra) -> dict:
    resp = await client.post(
        "/api/articles",
        json={"article": {"title": title, "body": "Body text", **extra}},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["article"]


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient):
    resp = await async_client.get("/api/articles")
    assert "x-response-time-ms" in resp.headers
    assert resp.headers["x-query-count"].isdigit()


# ---------------------------------------------------------------------------
# Create + get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_get_article(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    article = await _create_article(
        async_client, alice, "How to Train Your Dragon",
        description="Ever wonder how?", tagList=["dragons", "training"],
    )
    assert article["slug"] == "how-to-train-your-dragon"
    assert article["tagList"] == ["dragons", "training"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 0
    assert article["author"]["username"] == "alice"
    assert article["author"]["following"] is False
    assert "createdAt" in article and "updatedAt" in article

    resp = await async_client.get("/api/articles/how-to-train-your-dragon")
    assert resp.status_code == 200
    fetched = resp.json()["article"]
    assert fetched["title"] == "How to Train Your Dragon"
    assert fetched["description"] == "Ever wonder how?"
    assert fetched["body"] == "Body text"


@pytest.mark.asyncio
async def test_create_article_requires_identity(async_client: AsyncClient):
    resp = await async_client.post("/api/articles", json={"article": {"title": "T", "body": "B"}})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_malformed_identity_header_is_unauthorized(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/articles",
        json={"article": {"title": "T", "body": "B"}},
        headers={"X-User-Id": "not-a-number"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_missing_title_returns_400(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    resp = await async_client.post(
        "/api/articles", json={"article": {"description": "no title", "body": "B"}}, headers=alice
    )
    assert resp.status_code == 400
    assert "title" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_create_article_without_envelope_returns_400(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    resp = await async_client.post("/api/articles", json={}, headers=alice)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_titles_get_distinct_slugs(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    first = await _create_article(async_client, alice, "Same Title")
    second = await _create_article(async_client, alice, "Same Title")
    assert first["slug"] == "same-title"
    assert second["slug"] != first["slug"]


@pytest.mark.asyncio
async def test_get_unknown_article_returns_404(async_client: AsyncClient):
    resp = await async_client.get("/api/articles/not-existing")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_keeps_slug(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    await _create_article(async_client, alice, "Original Title", tagList=["a"])

    resp = await async_client.put(
        "/api/articles/original-title",
        json={"article": {"title": "Updated Title"}},
        headers=alice,
    )
    assert resp.status_code == 200
    updated = resp.json()["article"]
    assert updated["title"] == "Updated Title"
    assert updated["slug"] == "original-title"
    assert updated["body"] == "Body text"
    assert updated["tagList"] == ["a"]


@pytest.mark.asyncio
async def test_update_article_replaces_tags(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    await _create_article(async_client, alice, "Tagged", tagList=["old"])
    resp = await async_client.put(
        "/api/articles/tagged", json={"article": {"tagList": ["new-a", "new-b"]}}, headers=alice
    )
    assert resp.json()["article"]["tagList"] == ["new-a", "new-b"]


@pytest.mark.asyncio
async def test_update_by_other_user_is_forbidden(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    bob = await _register(async_client, "bob")
    await _create_article(async_client, alice, "Mine")

    resp = await async_client.put("/api/articles/mine", json={"article": {"title": "X"}}, headers=bob)
    assert resp.status_code == 403
    resp = await async_client.delete("/api/articles/mine", headers=bob)
    assert resp.status_code == 403

    resp = await async_client.get("/api/articles/mine")
    assert resp.json()["article"]["title"] == "Mine"


@pytest.mark.asyncio
async def test_update_unknown_article_returns_404(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    resp = await async_client.put("/api/articles/ghost", json={"article": {"title": "X"}}, headers=alice)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_article(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    await _create_article(async_client, alice, "Doomed", tagList=["x"])

    resp = await async_client.delete("/api/articles/doomed", headers=alice)
    assert resp.status_code == 204
    assert resp.content == b""

    resp = await async_client.get("/api/articles/doomed")
    assert resp.status_code == 404
    resp = await async_client.delete("/api/articles/doomed", headers=alice)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_and_unfavorite_are_idempotent(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    bob = await _register(async_client, "bob")
    created = await _create_article(async_client, alice, "Foo")

    for _ in range(2):
        resp = await async_client.post("/api/articles/foo/favorite", headers=bob)
        assert resp.status_code == 200
        article = resp.json()["article"]
        assert article["favorited"] is True
        assert article["favoritesCount"] == 1
    # Favorites never count as an edit.
    assert article["updatedAt"] == created["updatedAt"]

    # Another caller sees the count but not the flag.
    resp = await async_client.get("/api/articles/foo", headers=alice)
    assert resp.json()["article"]["favorited"] is False
    assert resp.json()["article"]["favoritesCount"] == 1

    for _ in range(2):
        resp = await async_client.delete("/api/articles/foo/favorite", headers=bob)
        assert resp.status_code == 200
        assert resp.json()["article"]["favorited"] is False
        assert resp.json()["article"]["favoritesCount"] == 0


@pytest.mark.asyncio
async def test_favorite_requires_identity_and_article(async_client: AsyncClient):
    bob = await _register(async_client, "bob")
    resp = await async_client.post("/api/articles/foo/favorite")
    assert resp.status_code == 401
    resp = await async_client.post("/api/articles/foo/favorite", headers=bob)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/articles")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_pagination(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    for i in range(4):
        await _create_article(async_client, alice, f"Article {i}")

    full = (await async_client.get("/api/articles")).json()
    first = (await async_client.get("/api/articles?offset=0&limit=2")).json()
    second = (await async_client.get("/api/articles?offset=2&limit=2")).json()

    expected = ["article-3", "article-2", "article-1", "article-0"]
    assert [a["slug"] for a in full["articles"]] == expected
    assert [a["slug"] for a in first["articles"] + second["articles"]] == expected
    assert first["articlesCount"] == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["offset=abc", "limit=-1", "limit=2.5"])
async def test_list_articles_invalid_pagination_returns_400(async_client: AsyncClient, query):
    resp = await async_client.get(f"/api/articles?{query}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_articles_filters(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    bob = await _register(async_client, "bob")
    await _create_article(async_client, alice, "Alpha", tagList=["python"])
    await _create_article(async_client, bob, "Bravo", tagList=["python", "web"])
    await _create_article(async_client, bob, "Charlie")
    await async_client.post("/api/articles/alpha/favorite", headers=bob)

    by_tag = (await async_client.get("/api/articles?tag=python")).json()
    assert [a["slug"] for a in by_tag["articles"]] == ["bravo", "alpha"]

    by_author = (await async_client.get("/api/articles?author=bob")).json()
    assert [a["slug"] for a in by_author["articles"]] == ["charlie", "bravo"]

    both = (await async_client.get("/api/articles?author=bob&tag=python")).json()
    assert [a["slug"] for a in both["articles"]] == ["bravo"]

    favorited = (await async_client.get("/api/articles?favorited=bob", headers=bob)).json()
    assert [a["slug"] for a in favorited["articles"]] == ["alpha"]
    assert favorited["articles"][0]["favorited"] is True

    nobody = (await async_client.get("/api/articles?author=nobody")).json()
    assert nobody == {"articles": [], "articlesCount": 0}


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_feed_requires_identity(async_client: AsyncClient):
    resp = await async_client.get("/api/articles/feed")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_feed_lists_followed_authors(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    bob = await _register(async_client, "bob")
    carol = await _register(async_client, "carol")
    await _create_article(async_client, bob, "From Bob")
    await _create_article(async_client, carol, "From Carol")
    await _create_article(async_client, alice, "From Alice")

    resp = await async_client.post("/api/profiles/bob/follow", headers=alice)
    assert resp.status_code == 200

    resp = await async_client.get("/api/articles/feed?offset=0&limit=5", headers=alice)
    assert resp.status_code == 200
    feed = resp.json()
    assert [a["slug"] for a in feed["articles"]] == ["from-bob"]
    assert feed["articlesCount"] == 1
    assert feed["articles"][0]["author"]["following"] is True

    listing = (await async_client.get("/api/articles?author=bob", headers=alice)).json()
    assert listing["articles"][0]["author"]["following"] is True


# ---------------------------------------------------------------------------
# Input bounds
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_offset_beyond_integer_range_returns_empty_page(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    await _create_article(async_client, alice, "Only")

    resp = await async_client.get("/api/articles?offset=99999999999999999999")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 1}

    resp = await async_client.get("/api/articles/feed?offset=99999999999999999999", headers=alice)
    assert resp.status_code == 200
    assert resp.json()["articles"] == []


@pytest.mark.asyncio
async def test_overlong_title_returns_400(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    resp = await async_client.post(
        "/api/articles", json={"article": {"title": "t" * 301, "body": "B"}}, headers=alice
    )
    assert resp.status_code == 400
    assert "article.title" in resp.json()["errors"]

    article = await _create_article(async_client, alice, "t" * 300)
    assert len(article["slug"]) == 300

    resp = await async_client.put(
        f"/api/articles/{article['slug']}",
        json={"article": {"title": "u" * 301}},
        headers=alice,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_overlong_tag_returns_400(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    resp = await async_client.post(
        "/api/articles",
        json={"article": {"title": "T", "body": "B", "tagList": ["ok", "x" * 101]}},
        headers=alice,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", ["0", "2147483648", "99999999999999999999"])
async def test_identity_outside_id_range_is_unauthorized(async_client: AsyncClient, user_id):
    resp = await async_client.post(
        "/api/articles",
        json={"article": {"title": "T", "body": "B"}},
        headers={"X-User-Id": user_id},
    )
    assert resp.status_code == 401

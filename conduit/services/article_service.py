"""
Article service: lifecycle, ownership and favorites for the Article aggregate.

Design notes
------------
- The service only talks to the store interfaces in ``conduit.stores``;
  the HTTP layer wires in the SQL implementations, tests wire in
  in-memory ones.
- Every mutation of an existing article runs under ``slug_locks.hold``
  and commits before releasing the lock.  Failures raised inside the
  block leave nothing committed.
- Authorization is decided by ``conduit.policy``; this module only maps a
  negative answer to ``Forbidden``.
- Slugs are computed once, at creation.  Renaming an article keeps its
  slug so existing links stay valid.
"""
import asyncio
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, ConfigDict

from conduit.config import settings
from conduit.domain import ArticleRecord, NewArticle
from conduit.errors import Forbidden, InvalidInput, NotFound, ServiceUnavailable
from conduit.locks import SlugLocks, slug_locks
from conduit.policy import can_modify, require_caller
from conduit.query import ArticlePage, ListingQuery, Pagination
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.stores.base import ArticleStore, CommentStore, FollowGraph

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

# Used when a title has no sluggable characters at all ("!!!").
_FALLBACK_SLUG = "article"

# articles.slug is VARCHAR(350); leaves room for the collision suffix.
_MAX_SLUG_BASE = 300


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_tags(tags: list[str]) -> list[str]:
    """Strip whitespace, drop blanks and duplicates, keep first-seen order."""
    return list(dict.fromkeys(t.strip() for t in tags if t and t.strip()))


async def followed_authors(graph: FollowGraph, caller_id: int | None) -> set[int]:
    """
    Ids of the authors *caller_id* follows; empty for anonymous callers.

    One bounded call to the follow graph.  Any failure, timeout included,
    becomes ``ServiceUnavailable``.
    """
    if caller_id is None:
        return set()
    try:
        return await asyncio.wait_for(
            graph.followed_authors(caller_id),
            timeout=settings.FOLLOW_GRAPH_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("Follow graph timed out for follower=%s", caller_id)
        raise ServiceUnavailable("follow-graph") from None
    except Exception as exc:
        logger.error("Follow graph lookup failed for follower=%s: %s", caller_id, exc)
        raise ServiceUnavailable("follow-graph") from exc


class ArticleFilters(BaseModel):
    """Listing filters; ``None`` means "any"."""

    model_config = ConfigDict(frozen=True)

    tag: str | None = None
    author_id: int | None = None
    favorited_by: int | None = None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ArticleService:
    def __init__(
        self,
        articles: ArticleStore,
        comments: CommentStore,
        follows: FollowGraph,
        *,
        locks: SlugLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._articles = articles
        self._comments = comments
        self._follows = follows
        self._locks = locks or slug_locks
        self._clock = clock

    async def _require_article(self, slug: str, *, for_update: bool = False) -> ArticleRecord:
        article = await self._articles.get(slug, for_update=for_update)
        if article is None:
            raise NotFound("article", slug=slug)
        return article

    async def _require_owned(self, caller_id: int | None, slug: str) -> ArticleRecord:
        """NotFound, then Unauthorized, then Forbidden."""
        article = await self._require_article(slug, for_update=True)
        require_caller(caller_id)
        if not can_modify(caller_id, article):
            raise Forbidden(slug)
        return article

    async def _unique_slug(self, title: str) -> str:
        base = slugify(title)[:_MAX_SLUG_BASE].rstrip("-") or _FALLBACK_SLUG
        slug = base
        while await self._articles.slug_exists(slug):
            slug = f"{base}-{secrets.token_hex(3)}"
        return slug

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_articles(
        self,
        filters: ArticleFilters,
        page: Pagination,
        caller_id: int | None = None,
    ) -> ArticlePage:
        """Articles matching every filter, newest first, windowed by *page*."""
        query = ListingQuery(
            tag=filters.tag,
            author_id=filters.author_id,
            favorited_by=filters.favorited_by,
            page=page,
        )
        return await self._articles.find(query)

    async def get_feed(self, caller_id: int | None, page: Pagination) -> ArticlePage:
        """Articles by the authors *caller_id* follows, newest first."""
        caller_id = require_caller(caller_id)
        authors = await followed_authors(self._follows, caller_id)
        return await self._articles.find(ListingQuery(author_ids=frozenset(authors), page=page))

    async def get_article(self, slug: str) -> ArticleRecord:
        return await self._require_article(slug)

    async def followed_authors(self, caller_id: int | None) -> set[int]:
        return await followed_authors(self._follows, caller_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_article(self, caller_id: int | None, data: ArticleCreate) -> ArticleRecord:
        """
        Create an article owned by *caller_id*.

        The slug comes from the title; if another article already holds it
        a short random suffix is appended until it is free.  The candidate
        slug stays locked from the free-check to the commit, so two
        concurrent creates can never claim the same slug.
        """
        caller_id = require_caller(caller_id)
        if not data.title.strip():
            raise InvalidInput("title")
        if not data.body.strip():
            raise InvalidInput("body")

        while True:
            slug = await self._unique_slug(data.title)
            async with self._locks.hold(slug):
                if await self._articles.slug_exists(slug):
                    continue
                article = await self._articles.add(
                    NewArticle(
                        slug=slug,
                        title=data.title,
                        description=data.description,
                        body=data.body,
                        tag_list=clean_tags(data.tag_list),
                        author_id=caller_id,
                        created_at=self._clock(),
                    )
                )
                await self._articles.commit()
            logger.info("Article created slug=%r author=%s", slug, caller_id)
            return article

    async def update_article(
        self, caller_id: int | None, slug: str, data: ArticleUpdate
    ) -> ArticleRecord:
        """
        Apply the fields present in *data*; absent (or null) fields are left
        untouched.  The slug never changes.
        """
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        async with self._locks.hold(slug):
            article = await self._require_owned(caller_id, slug)
            for field in ("title", "body"):
                if field in changes and not changes[field].strip():
                    raise InvalidInput(field)
            if "tag_list" in changes:
                changes["tag_list"] = clean_tags(changes["tag_list"])
            if not changes:
                return article

            updated = await self._articles.update(slug, changes, self._clock())
            await self._articles.commit()
        logger.info("Article updated slug=%r fields=%s", slug, sorted(changes))
        return updated

    async def delete_article(self, caller_id: int | None, slug: str) -> None:
        """Delete the article and, in the same commit, all of its comments."""
        async with self._locks.hold(slug):
            await self._require_owned(caller_id, slug)
            removed = await self._comments.delete_for_article(slug)
            await self._articles.delete(slug)
            await self._articles.commit()
        logger.info("Article deleted slug=%r comments_removed=%d", slug, removed)

    async def favorite_article(self, caller_id: int | None, slug: str) -> ArticleRecord:
        return await self._set_favorite(caller_id, slug, True)

    async def unfavorite_article(self, caller_id: int | None, slug: str) -> ArticleRecord:
        return await self._set_favorite(caller_id, slug, False)

    async def _set_favorite(self, caller_id: int | None, slug: str, favorited: bool) -> ArticleRecord:
        # Idempotent: repeating the call returns the current state.
        caller_id = require_caller(caller_id)
        async with self._locks.hold(slug):
            article = await self._require_article(slug, for_update=True)
            if article.is_favorited_by(caller_id) == favorited:
                return article
            article = await self._articles.set_favorite(slug, caller_id, favorited)
            await self._articles.commit()
        return article

"""
Comment service: comments nested under an article.

A comment can only be created under an article that exists, and it
disappears with that article (see ``ArticleService.delete_article``).
Writes take the parent article's slug lock, so a comment can never be
added to an article that is being deleted concurrently.
"""
import logging
from datetime import datetime
from typing import Callable

from conduit.domain import MAX_ID, ArticleRecord, CommentRecord
from conduit.errors import Forbidden, InvalidInput, NotFound
from conduit.locks import SlugLocks, slug_locks
from conduit.policy import can_delete_comment, require_caller
from conduit.services.article_service import followed_authors, utcnow
from conduit.stores.base import ArticleStore, CommentStore, FollowGraph

logger = logging.getLogger(__name__)


class CommentService:
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

    async def get_comments(self, slug: str) -> list[CommentRecord]:
        """Comments on *slug*, oldest first."""
        await self._require_article(slug)
        return await self._comments.list_for_article(slug)

    async def add_comment(self, caller_id: int | None, slug: str, body: str) -> CommentRecord:
        caller_id = require_caller(caller_id)
        async with self._locks.hold(slug):
            await self._require_article(slug, for_update=True)
            if not body or not body.strip():
                raise InvalidInput("body")
            comment = await self._comments.add(slug, caller_id, body, self._clock())
            await self._comments.commit()
        logger.info("Comment %d added to slug=%r by %s", comment.id, slug, caller_id)
        return comment

    async def delete_comment(self, caller_id: int | None, slug: str, comment_id: int) -> None:
        """
        Remove a comment.  Allowed for the comment's author and for the
        author of the article it belongs to.
        """
        async with self._locks.hold(slug):
            article = await self._require_article(slug, for_update=True)
            comment = await self._comments.get(comment_id) if 0 < comment_id <= MAX_ID else None
            if comment is None or comment.article_slug != slug:
                raise NotFound("comment", slug=slug, comment_id=comment_id)
            require_caller(caller_id)
            if not can_delete_comment(caller_id, article, comment):
                raise Forbidden(slug, comment_id)
            await self._comments.delete(comment_id)
            await self._comments.commit()
        logger.info("Comment %d deleted from slug=%r by %s", comment_id, slug, caller_id)

    async def followed_authors(self, caller_id: int | None) -> set[int]:
        return await followed_authors(self._follows, caller_id)

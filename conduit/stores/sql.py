"""
SQLAlchemy implementations of the store interfaces.

Design notes
------------
- Every relationship is ``lazy="noload"``; reads spell out their eager
  loading (``joinedload`` for the author, ``selectinload`` for tag links
  and favorites) so a listing page costs a fixed number of queries.
- Writes flush but never commit on their own.  ``commit()`` is called by
  the service while it still holds the article's lock; cache entries for
  the slugs written in the transaction are dropped only after the commit
  succeeded, so a concurrent reader cannot re-cache pre-commit state.
- Records are rebuilt from the database after each write
  (``populate_existing``) rather than patched in Python.
"""
import logging
from datetime import datetime

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.cache import CacheManager, cache as default_cache
from conduit.config import settings
from conduit.domain import ArticleRecord, AuthorRecord, CommentRecord, NewArticle
from conduit.errors import NotFound
from conduit.models import Article, ArticleTag, Comment, Favorite, Tag, User, follows
from conduit.query import ArticlePage, ListingQuery
from conduit.stores.base import ArticleStore, CommentStore, FollowGraph

logger = logging.getLogger(__name__)

_ARTICLE_LOAD_OPTIONS = (
    joinedload(Article.author),
    selectinload(Article.tag_links).joinedload(ArticleTag.tag),
    selectinload(Article.favorites),
)


# ---------------------------------------------------------------------------
# Row -> record helpers
# ---------------------------------------------------------------------------

def author_record(user: User) -> AuthorRecord:
    return AuthorRecord(id=user.id, username=user.username, bio=user.bio, image=user.image)


def _article_record(article: Article) -> ArticleRecord:
    return ArticleRecord(
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=[link.tag.name for link in article.tag_links],
        author_id=article.author_id,
        author=author_record(article.author),
        favorited_by=frozenset(f.user_id for f in article.favorites),
        created_at=article.created_at,
        updated_at=article.updated_at,
    )


def _comment_record(comment: Comment, slug: str) -> CommentRecord:
    return CommentRecord(
        id=comment.id,
        article_slug=slug,
        body=comment.body,
        author_id=comment.author_id,
        author=author_record(comment.author),
        created_at=comment.created_at,
    )


def _listing_suffix(query: ListingQuery) -> str:
    return (
        f"{query.tag}:{query.author_id}:{query.favorited_by}"
        f":{query.page.offset}:{query.page.limit}"
    )


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

class SqlArticleStore(ArticleStore):
    def __init__(self, db: AsyncSession, cache: CacheManager | None = None) -> None:
        self._db = db
        self._cache = cache or default_cache
        self._dirty: set[str] = set()

    async def _row(self, slug: str, *, for_update: bool = False) -> Article | None:
        q = select(Article).where(Article.slug == slug)
        if for_update:
            q = q.with_for_update(of=Article)
        result = await self._db.execute(q)
        return result.scalar_one_or_none()

    async def _fetch(self, slug: str, *, for_update: bool = False) -> ArticleRecord | None:
        q = (
            select(Article)
            .where(Article.slug == slug)
            .options(*_ARTICLE_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
        )
        if for_update:
            q = q.with_for_update(of=Article)
        result = await self._db.execute(q)
        article = result.unique().scalar_one_or_none()
        return _article_record(article) if article is not None else None

    async def _resolve_tags(self, tag_names: list[str]) -> list[Tag]:
        """Return Tag rows for *tag_names* in order, creating the missing ones."""
        tags: list[Tag] = []
        for name in tag_names:
            result = await self._db.execute(select(Tag).where(Tag.name == name))
            tag = result.scalar_one_or_none()
            if tag is None:
                tag = Tag(name=name)
                self._db.add(tag)
                await self._db.flush()
            tags.append(tag)
        return tags

    async def _link_tags(self, article_id: int, tag_names: list[str]) -> None:
        for position, tag in enumerate(await self._resolve_tags(tag_names)):
            self._db.add(ArticleTag(article_id=article_id, tag_id=tag.id, position=position))

    async def get(self, slug: str, *, for_update: bool = False) -> ArticleRecord | None:
        if for_update:
            return await self._fetch(slug, for_update=True)

        # Generation read before the database fetch; see CacheManager.bump.
        cache_key = await self._cache.detail_key(slug)
        cached = await self._cache.get(cache_key)
        if cached:
            return ArticleRecord.model_validate(cached)

        record = await self._fetch(slug)
        if record is not None:
            await self._cache.set(
                cache_key, record.model_dump(mode="json"), ttl=settings.CACHE_TTL_DETAIL
            )
        return record

    async def slug_exists(self, slug: str) -> bool:
        result = await self._db.execute(select(exists().where(Article.slug == slug)))
        return bool(result.scalar())

    async def add(self, article: NewArticle) -> ArticleRecord:
        row = Article(
            slug=article.slug,
            title=article.title,
            description=article.description,
            body=article.body,
            author_id=article.author_id,
            created_at=article.created_at,
            updated_at=article.created_at,
        )
        self._db.add(row)
        await self._db.flush()
        await self._link_tags(row.id, article.tag_list)
        await self._db.flush()
        self._dirty.add(article.slug)
        return await self._fetch(article.slug)

    async def update(self, slug: str, changes: dict, updated_at: datetime) -> ArticleRecord:
        row = await self._row(slug, for_update=True)
        if row is None:
            raise NotFound("article", slug=slug)

        changes = dict(changes)
        tag_list = changes.pop("tag_list", None)
        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_at = updated_at

        if tag_list is not None:
            await self._db.execute(delete(ArticleTag).where(ArticleTag.article_id == row.id))
            await self._link_tags(row.id, tag_list)

        await self._db.flush()
        self._dirty.add(slug)
        return await self._fetch(slug)

    async def delete(self, slug: str) -> None:
        article_id = (
            await self._db.execute(select(Article.id).where(Article.slug == slug))
        ).scalar_one_or_none()
        if article_id is None:
            return
        # Explicit child deletes: SQLite only honours ON DELETE with PRAGMA foreign_keys.
        await self._db.execute(delete(Favorite).where(Favorite.article_id == article_id))
        await self._db.execute(delete(ArticleTag).where(ArticleTag.article_id == article_id))
        await self._db.execute(delete(Article).where(Article.id == article_id))
        self._dirty.add(slug)

    async def set_favorite(self, slug: str, user_id: int, favorited: bool) -> ArticleRecord:
        article_id = (
            await self._db.execute(select(Article.id).where(Article.slug == slug))
        ).scalar_one_or_none()
        if article_id is None:
            raise NotFound("article", slug=slug)

        present = (
            await self._db.execute(
                select(
                    exists().where(Favorite.article_id == article_id, Favorite.user_id == user_id)
                )
            )
        ).scalar()
        if favorited and not present:
            self._db.add(Favorite(article_id=article_id, user_id=user_id))
            self._dirty.add(slug)
        elif not favorited and present:
            await self._db.execute(
                delete(Favorite).where(
                    Favorite.article_id == article_id, Favorite.user_id == user_id
                )
            )
            self._dirty.add(slug)
        await self._db.flush()
        return await self._fetch(slug)

    async def find(self, query: ListingQuery) -> ArticlePage:
        # Feeds are per caller and never cached.
        cache_key = None
        if query.author_ids is None:
            cache_key = await self._cache.list_key(_listing_suffix(query))
        if cache_key:
            cached = await self._cache.get(cache_key)
            if cached:
                return ArticlePage.model_validate(cached)

        q = select(Article)
        if query.tag is not None:
            q = q.where(
                Article.tag_links.any(ArticleTag.tag_id.in_(select(Tag.id).where(Tag.name == query.tag)))
            )
        if query.author_id is not None:
            q = q.where(Article.author_id == query.author_id)
        if query.favorited_by is not None:
            q = q.where(Article.favorites.any(Favorite.user_id == query.favorited_by))
        if query.author_ids is not None:
            q = q.where(Article.author_id.in_(sorted(query.author_ids)))

        total: int = (
            await self._db.execute(select(func.count()).select_from(q.subquery()))
        ).scalar_one()

        rows_q = (
            q.options(*_ARTICLE_LOAD_OPTIONS)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .offset(query.page.offset)
            .limit(query.page.limit)
        )
        result = await self._db.execute(rows_q)
        page = ArticlePage(
            articles=[_article_record(a) for a in result.unique().scalars().all()],
            total=total,
        )
        if cache_key:
            await self._cache.set(cache_key, page.model_dump(mode="json"), ttl=settings.CACHE_TTL_LIST)
        return page

    async def commit(self) -> None:
        await self._db.commit()
        dirty, self._dirty = self._dirty, set()
        if dirty:
            await self._cache.invalidate_articles(dirty)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class SqlCommentStore(CommentStore):
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list_for_article(self, slug: str) -> list[CommentRecord]:
        q = (
            select(Comment)
            .join(Article, Comment.article_id == Article.id)
            .where(Article.slug == slug)
            .options(joinedload(Comment.author))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        result = await self._db.execute(q)
        return [_comment_record(c, slug) for c in result.unique().scalars().all()]

    async def get(self, comment_id: int) -> CommentRecord | None:
        q = (
            select(Comment)
            .where(Comment.id == comment_id)
            .options(joinedload(Comment.author), joinedload(Comment.article))
        )
        result = await self._db.execute(q)
        comment = result.unique().scalar_one_or_none()
        if comment is None:
            return None
        return _comment_record(comment, comment.article.slug)

    async def add(
        self, slug: str, author_id: int, body: str, created_at: datetime
    ) -> CommentRecord:
        article_id = (
            await self._db.execute(select(Article.id).where(Article.slug == slug))
        ).scalar_one_or_none()
        if article_id is None:
            raise NotFound("article", slug=slug)

        comment = Comment(
            body=body, article_id=article_id, author_id=author_id, created_at=created_at
        )
        self._db.add(comment)
        await self._db.flush()

        result = await self._db.execute(
            select(Comment)
            .where(Comment.id == comment.id)
            .options(joinedload(Comment.author))
            .execution_options(populate_existing=True)
        )
        return _comment_record(result.unique().scalar_one(), slug)

    async def delete(self, comment_id: int) -> None:
        await self._db.execute(delete(Comment).where(Comment.id == comment_id))

    async def delete_for_article(self, slug: str) -> int:
        result = await self._db.execute(
            delete(Comment).where(
                Comment.article_id.in_(select(Article.id).where(Article.slug == slug))
            )
        )
        return result.rowcount or 0

    async def commit(self) -> None:
        await self._db.commit()


# ---------------------------------------------------------------------------
# Follow graph
# ---------------------------------------------------------------------------

class SqlFollowGraph(FollowGraph):
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def is_following(self, follower_id: int, author_id: int) -> bool:
        q = select(
            exists().where(
                follows.c.follower_id == follower_id, follows.c.followee_id == author_id
            )
        )
        return bool((await self._db.execute(q)).scalar())

    async def followed_authors(self, follower_id: int) -> set[int]:
        q = select(follows.c.followee_id).where(follows.c.follower_id == follower_id)
        return set((await self._db.execute(q)).scalars().all())

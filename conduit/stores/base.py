"""Store interfaces the services depend on; implemented in ``conduit.stores.sql``."""
from abc import ABC, abstractmethod
from datetime import datetime

from conduit.domain import ArticleRecord, CommentRecord, NewArticle
from conduit.query import ArticlePage, ListingQuery


class ArticleStore(ABC):
    """Owns article records, their slugs, tags and favorite relationships."""

    @abstractmethod
    async def get(self, slug: str, *, for_update: bool = False) -> ArticleRecord | None:
        """Return the article for *slug*, or None."""
        ...

    @abstractmethod
    async def slug_exists(self, slug: str) -> bool:
        ...

    @abstractmethod
    async def add(self, article: NewArticle) -> ArticleRecord:
        """Insert a new article.  The caller guarantees the slug is free."""
        ...

    @abstractmethod
    async def update(self, slug: str, changes: dict, updated_at: datetime) -> ArticleRecord:
        """Apply *changes* (field name -> value, ``tag_list`` included) to an existing article."""
        ...

    @abstractmethod
    async def delete(self, slug: str) -> None:
        ...

    @abstractmethod
    async def set_favorite(self, slug: str, user_id: int, favorited: bool) -> ArticleRecord:
        """Add or remove *user_id* from the article's favorites; no-op if already in that state."""
        ...

    @abstractmethod
    async def find(self, query: ListingQuery) -> ArticlePage:
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Make pending writes visible to other readers."""
        ...


class CommentStore(ABC):
    """Owns comments; refers to the parent article by slug only."""

    @abstractmethod
    async def list_for_article(self, slug: str) -> list[CommentRecord]:
        """Comments under *slug*, oldest first."""
        ...

    @abstractmethod
    async def get(self, comment_id: int) -> CommentRecord | None:
        ...

    @abstractmethod
    async def add(
        self, slug: str, author_id: int, body: str, created_at: datetime
    ) -> CommentRecord:
        ...

    @abstractmethod
    async def delete(self, comment_id: int) -> None:
        ...

    @abstractmethod
    async def delete_for_article(self, slug: str) -> int:
        """Remove every comment under *slug*; returns how many were removed."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...


class FollowGraph(ABC):
    """Read-only view of who follows whom."""

    @abstractmethod
    async def is_following(self, follower_id: int, author_id: int) -> bool:
        ...

    @abstractmethod
    async def followed_authors(self, follower_id: int) -> set[int]:
        ...

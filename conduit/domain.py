"""
Plain records passed between stores, services and presenters.

Records are frozen: a store publishes a new record instead of mutating
one that a concurrent reader might be holding.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# Row ids (users, articles, comments) are 32-bit INTEGER columns.
MAX_ID = 2**31 - 1


class AuthorRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    bio: str | None = None
    image: str | None = None


class ArticleRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    author_id: int
    author: AuthorRecord
    favorited_by: frozenset[int] = frozenset()
    created_at: datetime
    updated_at: datetime

    @property
    def favorites_count(self) -> int:
        return len(self.favorited_by)

    def is_favorited_by(self, user_id: int | None) -> bool:
        return user_id is not None and user_id in self.favorited_by


class NewArticle(BaseModel):
    """Everything a store needs to insert an article; the slug is already unique."""

    slug: str
    title: str
    description: str = ""
    body: str
    tag_list: list[str] = []
    author_id: int
    created_at: datetime


class CommentRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    article_slug: str
    body: str
    author_id: int
    author: AuthorRecord
    created_at: datetime

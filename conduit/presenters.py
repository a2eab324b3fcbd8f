"""
Record -> wire conversion.

Per-caller fields (``favorited``, ``author.following``) are filled in here
from the caller id and the set of authors the caller follows; the records
themselves are caller-independent.
"""
from datetime import datetime, timezone

from conduit.domain import ArticleRecord, AuthorRecord, CommentRecord
from conduit.query import ArticlePage
from conduit.schemas import (
    ArticleResponse,
    CommentResponse,
    MultipleArticlesResponse,
    ProfileResponse,
)


def _utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they were written in UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def present_profile(author: AuthorRecord, following: bool) -> ProfileResponse:
    return ProfileResponse(
        username=author.username, bio=author.bio, image=author.image, following=following
    )


def present_article(
    article: ArticleRecord, caller_id: int | None, followed: set[int]
) -> ArticleResponse:
    return ArticleResponse(
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=list(article.tag_list),
        created_at=_utc(article.created_at),
        updated_at=_utc(article.updated_at),
        favorited=article.is_favorited_by(caller_id),
        favorites_count=article.favorites_count,
        author=present_profile(article.author, article.author_id in followed),
    )


def present_page(
    page: ArticlePage, caller_id: int | None, followed: set[int]
) -> MultipleArticlesResponse:
    return MultipleArticlesResponse(
        articles=[present_article(a, caller_id, followed) for a in page.articles],
        articles_count=page.total,
    )


def present_comment(comment: CommentRecord, followed: set[int]) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        body=comment.body,
        created_at=_utc(comment.created_at),
        author=present_profile(comment.author, comment.author_id in followed),
    )

from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.domain import MAX_ID
from conduit.errors import Unauthorized
from conduit.query import Pagination
from conduit.services.article_service import ArticleService
from conduit.services.comment_service import CommentService
from conduit.stores.sql import SqlArticleStore, SqlCommentStore, SqlFollowGraph


def get_caller_id(x_user_id: str | None = Header(None)) -> int | None:
    """
    Identity resolved by the authentication gateway in front of the API.

    The gateway verifies the token and forwards the user id in
    ``X-User-Id``; a missing header means an anonymous caller.  A header
    that is not a user id (a positive integer within the id range) is
    treated as a failed authentication.
    """
    if x_user_id is None or x_user_id == "":
        return None
    if not (x_user_id.isascii() and x_user_id.isdigit()) or len(x_user_id) > 10:
        raise Unauthorized()
    user_id = int(x_user_id)
    if not 0 < user_id <= MAX_ID:
        raise Unauthorized()
    return user_id


def get_pagination(
    offset: str | None = Query(None, description="Number of articles to skip."),
    limit: str | None = Query(None, description="Page size (clamped to MAX_PAGE_SIZE)."),
) -> Pagination:
    """
    Parse ``offset``/``limit`` as raw strings so malformed values surface as
    ``InvalidQuery`` (400) instead of FastAPI's generic 422.
    """
    return Pagination.parse(offset, limit)


def get_article_service(db: AsyncSession = Depends(get_db)) -> ArticleService:
    return ArticleService(SqlArticleStore(db), SqlCommentStore(db), SqlFollowGraph(db))


def get_comment_service(db: AsyncSession = Depends(get_db)) -> CommentService:
    return CommentService(SqlArticleStore(db), SqlCommentStore(db), SqlFollowGraph(db))

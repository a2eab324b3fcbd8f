"""Ownership rules applied before every mutating operation."""
from conduit.domain import ArticleRecord, CommentRecord
from conduit.errors import Unauthorized


def require_caller(caller_id: int | None) -> int:
    if caller_id is None:
        raise Unauthorized()
    return caller_id


def can_modify(caller_id: int | None, article: ArticleRecord) -> bool:
    """Only the author may edit or delete an article."""
    return caller_id is not None and caller_id == article.author_id


def can_delete_comment(
    caller_id: int | None, article: ArticleRecord, comment: CommentRecord
) -> bool:
    # The comment's author, or the author of the article it sits under.
    return caller_id is not None and (
        caller_id == comment.author_id or can_modify(caller_id, article)
    )

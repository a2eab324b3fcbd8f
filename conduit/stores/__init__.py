from conduit.stores.base import ArticleStore, CommentStore, FollowGraph
from conduit.stores.sql import SqlArticleStore, SqlCommentStore, SqlFollowGraph

__all__ = [
    "ArticleStore",
    "CommentStore",
    "FollowGraph",
    "SqlArticleStore",
    "SqlCommentStore",
    "SqlFollowGraph",
]

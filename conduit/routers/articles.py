from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import (
    get_article_service,
    get_caller_id,
    get_comment_service,
    get_pagination,
)
from conduit.presenters import present_article, present_comment, present_page
from conduit.query import ArticlePage, Pagination
from conduit.schemas import (
    MultipleArticlesResponse,
    MultipleCommentsResponse,
    NewArticleRequest,
    NewCommentRequest,
    SingleArticleResponse,
    SingleCommentResponse,
    UpdateArticleRequest,
)
from conduit.services import user_service
from conduit.services.article_service import ArticleFilters, ArticleService
from conduit.services.comment_service import CommentService

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("", response_model=MultipleArticlesResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None, description="Author username."),
    favorited: str | None = Query(None, description="Username of a user who favorited."),
    page: Pagination = Depends(get_pagination),
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
    db: AsyncSession = Depends(get_db),
):
    filters = {"tag": tag}
    for param, field, username in (
        ("author", "author_id", author),
        ("favorited", "favorited_by", favorited),
    ):
        if username is None:
            continue
        user_id = await user_service.resolve_user_id(db, username)
        if user_id is None:
            # Nobody by that name: nothing can match.
            return present_page(ArticlePage(articles=[], total=0), caller_id, set())
        filters[field] = user_id

    result = await service.list_articles(ArticleFilters(**filters), page, caller_id)
    followed = await service.followed_authors(caller_id)
    return present_page(result, caller_id, followed)


@router.get("/feed", response_model=MultipleArticlesResponse)
async def get_feed(
    page: Pagination = Depends(get_pagination),
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    result = await service.get_feed(caller_id, page)
    # Every author in a feed is followed by definition.
    followed = {a.author_id for a in result.articles}
    return present_page(result, caller_id, followed)


@router.post("", status_code=201, response_model=SingleArticleResponse)
async def create_article(
    data: NewArticleRequest,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    article = await service.create_article(caller_id, data.article)
    return SingleArticleResponse(article=present_article(article, caller_id, set()))


@router.get("/{slug}", response_model=SingleArticleResponse)
async def get_article(
    slug: str,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    article = await service.get_article(slug)
    followed = await service.followed_authors(caller_id)
    return SingleArticleResponse(article=present_article(article, caller_id, followed))


@router.put("/{slug}", response_model=SingleArticleResponse)
async def update_article(
    slug: str,
    data: UpdateArticleRequest,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    article = await service.update_article(caller_id, slug, data.article)
    return SingleArticleResponse(article=present_article(article, caller_id, set()))


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    await service.delete_article(caller_id, slug)
    return Response(status_code=204)


@router.post("/{slug}/favorite", response_model=SingleArticleResponse)
async def favorite_article(
    slug: str,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    article = await service.favorite_article(caller_id, slug)
    followed = await service.followed_authors(caller_id)
    return SingleArticleResponse(article=present_article(article, caller_id, followed))


@router.delete("/{slug}/favorite", response_model=SingleArticleResponse)
async def unfavorite_article(
    slug: str,
    caller_id: int | None = Depends(get_caller_id),
    service: ArticleService = Depends(get_article_service),
):
    article = await service.unfavorite_article(caller_id, slug)
    followed = await service.followed_authors(caller_id)
    return SingleArticleResponse(article=present_article(article, caller_id, followed))


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get("/{slug}/comments", response_model=MultipleCommentsResponse)
async def get_comments(
    slug: str,
    caller_id: int | None = Depends(get_caller_id),
    service: CommentService = Depends(get_comment_service),
):
    comments = await service.get_comments(slug)
    followed = await service.followed_authors(caller_id)
    return MultipleCommentsResponse(comments=[present_comment(c, followed) for c in comments])


@router.post("/{slug}/comments", status_code=201, response_model=SingleCommentResponse)
async def add_comment(
    slug: str,
    data: NewCommentRequest,
    caller_id: int | None = Depends(get_caller_id),
    service: CommentService = Depends(get_comment_service),
):
    comment = await service.add_comment(caller_id, slug, data.comment.body)
    return SingleCommentResponse(comment=present_comment(comment, set()))


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    caller_id: int | None = Depends(get_caller_id),
    service: CommentService = Depends(get_comment_service),
):
    await service.delete_comment(caller_id, slug, comment_id)
    return Response(status_code=204)

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# Column sizes: articles.title VARCHAR(300), tags.name VARCHAR(100).
TagName = Annotated[str, Field(max_length=100)]


# --- Profile / User ---

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class NewUserRequest(BaseModel):
    user: UserCreate


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    bio: str | None = None
    image: str | None = None


class UserEnvelope(BaseModel):
    user: UserResponse


class ProfileResponse(BaseModel):
    model_config = _WIRE

    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileEnvelope(BaseModel):
    profile: ProfileResponse


# --- Article ---
#
# Request fields default to empty so the service, not the parser, decides
# what counts as missing.

class ArticleCreate(BaseModel):
    model_config = _WIRE

    title: str = Field("", max_length=300)
    description: str = ""
    body: str = ""
    tag_list: list[TagName] = []


class ArticleUpdate(BaseModel):
    model_config = _WIRE

    title: str | None = Field(None, max_length=300)
    description: str | None = None
    body: str | None = None
    tag_list: list[TagName] | None = None


class NewArticleRequest(BaseModel):
    article: ArticleCreate


class UpdateArticleRequest(BaseModel):
    article: ArticleUpdate


class ArticleResponse(BaseModel):
    model_config = _WIRE

    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author: ProfileResponse


class SingleArticleResponse(BaseModel):
    article: ArticleResponse


class MultipleArticlesResponse(BaseModel):
    model_config = _WIRE

    articles: list[ArticleResponse]
    articles_count: int


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = ""


class NewCommentRequest(BaseModel):
    comment: CommentCreate


class CommentResponse(BaseModel):
    model_config = _WIRE

    id: int
    body: str
    created_at: datetime
    author: ProfileResponse


class SingleCommentResponse(BaseModel):
    comment: CommentResponse


class MultipleCommentsResponse(BaseModel):
    comments: list[CommentResponse]

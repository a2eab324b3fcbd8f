"""
Listing and feed queries over a snapshot of articles.

``ListingQuery.select`` is the reference behaviour: filter (tag, then
author, then favorited-by, then followed authors), sort newest first,
slice ``[offset, offset + limit)``.  The SQL store builds the equivalent
statement; in-memory stores call ``select`` directly.
"""
from __future__ import annotations

import re
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from conduit.config import settings
from conduit.domain import ArticleRecord
from conduit.errors import InvalidQuery

_NON_NEGATIVE_INT_RE = re.compile(r"^\d+$")

# Largest OFFSET the database accepts (BIGINT).  Any larger offset selects
# nothing either way.
MAX_OFFSET = 2**63 - 1


def _parse_non_negative(
    name: str, value: str | int | None, default: int, ceiling: int = MAX_OFFSET
) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidQuery(name, str(value))
    if isinstance(value, int):
        if value < 0:
            raise InvalidQuery(name, str(value))
        return min(value, ceiling)
    text = str(value).strip()
    if not _NON_NEGATIVE_INT_RE.match(text):
        raise InvalidQuery(name, str(value))
    digits = text.lstrip("0") or "0"
    if len(digits) > len(str(ceiling)):
        return ceiling
    return min(int(digits), ceiling)


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset: int = 0
    limit: int = settings.DEFAULT_PAGE_SIZE

    @classmethod
    def parse(
        cls,
        offset: str | int | None = None,
        limit: str | int | None = None,
        *,
        default_limit: int | None = None,
        max_limit: int | None = None,
    ) -> "Pagination":
        """
        Build a window from raw query-string values.

        Missing values fall back to offset 0 and the configured page size;
        ``limit`` is clamped to *max_limit*.  Anything that is not a
        non-negative integer raises ``InvalidQuery``.
        """
        default_limit = settings.DEFAULT_PAGE_SIZE if default_limit is None else default_limit
        max_limit = settings.MAX_PAGE_SIZE if max_limit is None else max_limit
        parsed_offset = _parse_non_negative("offset", offset, 0)
        parsed_limit = _parse_non_negative("limit", limit, default_limit)
        return cls(offset=parsed_offset, limit=min(parsed_limit, max_limit))

    @property
    def stop(self) -> int:
        return self.offset + self.limit


class ArticlePage(BaseModel):
    articles: list[ArticleRecord]
    total: int


class ListingQuery(BaseModel):
    """Filters are ANDed; a ``None`` filter matches everything."""

    model_config = ConfigDict(frozen=True)

    tag: str | None = None
    author_id: int | None = None
    favorited_by: int | None = None
    # Feed restriction: only these authors.  An empty set matches nothing.
    author_ids: frozenset[int] | None = None
    page: Pagination = Pagination()

    def matches(self, article: ArticleRecord) -> bool:
        if self.tag is not None and self.tag not in article.tag_list:
            return False
        if self.author_id is not None and article.author_id != self.author_id:
            return False
        if self.favorited_by is not None and self.favorited_by not in article.favorited_by:
            return False
        if self.author_ids is not None and article.author_id not in self.author_ids:
            return False
        return True

    def select(self, articles: Iterable[ArticleRecord]) -> ArticlePage:
        """Apply the query to *articles*, given in insertion order."""
        matched = [(i, a) for i, a in enumerate(articles) if self.matches(a)]
        # Newest first; equal timestamps keep the later insertion first.
        matched.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        window = matched[self.page.offset:self.page.stop]
        return ArticlePage(articles=[a for _, a in window], total=len(matched))

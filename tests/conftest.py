"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, shared through StaticPool because an
  in-memory database only lives as long as its connection.
- ``get_db`` is overridden so every request uses the test session factory.
- Tables are created before and dropped after each test.
- Redis is disabled (``cache._redis = None``); the cache then misses on
  every read and skips every write, so requests always hit the database.
- Service tests that do not need SQL use the in-memory stores from
  ``fakes.py`` through the ``articles_env`` fixture.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from conduit.cache import cache
from conduit.database import Base, get_db
from conduit.locks import SlugLocks
from conduit.main import app
from conduit.middleware import install_query_counter
from conduit.services.article_service import ArticleService
from conduit.services.comment_service import CommentService
from fakes import InMemoryArticleStore, InMemoryCommentStore, InMemoryFollowGraph, TickingClock

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class ArticlesEnv:
    """Services wired to in-memory stores, with handles on every collaborator."""

    def __init__(self) -> None:
        self.articles = InMemoryArticleStore()
        self.comments = InMemoryCommentStore()
        self.graph = InMemoryFollowGraph()
        self.clock = TickingClock()
        self.locks = SlugLocks()
        self.service = ArticleService(
            self.articles, self.comments, self.graph, locks=self.locks, clock=self.clock
        )
        self.comment_service = CommentService(
            self.articles, self.comments, self.graph, locks=self.locks, clock=self.clock
        )


@pytest.fixture
def articles_env() -> ArticlesEnv:
    return ArticlesEnv()

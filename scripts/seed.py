"""Seed a Conduit database with demo users, follows, articles, favorites and comments.

Writes go through the services so seeded data obeys the same slug,
ownership and favorite rules as the API.
"""
import argparse
import asyncio
import random
import time

from conduit.database import Base, async_session, engine
from conduit.query import Pagination
from conduit.schemas import ArticleCreate, UserCreate
from conduit.services import user_service
from conduit.services.article_service import ArticleFilters, ArticleService
from conduit.services.comment_service import CommentService
from conduit.stores.sql import SqlArticleStore, SqlCommentStore, SqlFollowGraph

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]


async def seed(small: bool = False) -> None:
    num_users = 10 if small else 50
    num_articles = 100 if small else 5000
    max_comments = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as db:
        articles = ArticleService(SqlArticleStore(db), SqlCommentStore(db), SqlFollowGraph(db))
        comments = CommentService(SqlArticleStore(db), SqlCommentStore(db), SqlFollowGraph(db))

        users = []
        for i in range(num_users):
            users.append(await user_service.create_user(db, UserCreate(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                bio=f"I am test user number {i}. I write about technology.",
            )))
        for user in users:
            for followee in random.sample(users, k=min(5, num_users)):
                if followee.id != user.id:
                    await user_service.follow(db, user.id, followee.username)
        await db.commit()
        print(f"  Created {len(users)} users with follows")

        total_comments = 0
        for i in range(num_articles):
            topic = random.choice(TAGS)
            article = await articles.create_article(random.choice(users).id, ArticleCreate(
                title=f"Article {i}: How to optimize {topic} applications",
                description=f"A guide to optimizing {topic} applications for production.",
                body=f"This is the full content of article {i}. " * 20,
                tag_list=random.sample(TAGS, k=random.randint(1, 4)),
            ))
            for reader in random.sample(users, k=random.randint(0, 3)):
                await articles.favorite_article(reader.id, article.slug)
            for _ in range(random.randint(0, max_comments)):
                reader = random.choice(users)
                await comments.add_comment(
                    reader.id, article.slug, f"Great article! Comment by {reader.username}."
                )
                total_comments += 1
            if (i + 1) % 500 == 0:
                print(f"  {i + 1} articles created")

        listed = await articles.list_articles(ArticleFilters(), Pagination(limit=1))

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {listed.total}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

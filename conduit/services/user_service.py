"""
User service: just enough of the user aggregate to author articles and
build feeds: registration, profile lookup and the follow relation.

Account management (passwords, tokens, settings) lives in front of this
service; callers arrive here already identified.
"""
import logging

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.domain import AuthorRecord
from conduit.errors import Conflict, InvalidInput, NotFound
from conduit.models import User, follows
from conduit.policy import require_caller
from conduit.schemas import UserCreate
from conduit.stores.sql import SqlFollowGraph, author_record

logger = logging.getLogger(__name__)


async def _get_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def _require_user(db: AsyncSession, username: str) -> User:
    user = await _get_by_username(db, username)
    if user is None:
        raise NotFound("profile", username=username)
    return user


async def create_user(db: AsyncSession, data: UserCreate) -> AuthorRecord:
    """
    Register a user.  Username and email are unique; the pre-check names
    the clashing field, the unique constraints catch the concurrent case.
    """
    result = await db.execute(
        select(User.username, User.email).where(
            or_(User.username == data.username, User.email == data.email)
        )
    )
    clash = result.first()
    if clash is not None:
        raise Conflict("username" if clash.username == data.username else "email")

    user = User(username=data.username, email=data.email, bio=data.bio, image=data.image)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict("username") from None
    logger.info("User registered id=%s username=%r", user.id, user.username)
    return author_record(user)


async def resolve_user_id(db: AsyncSession, username: str) -> int | None:
    """Map a username filter to a user id; None when nobody has that name."""
    result = await db.execute(select(User.id).where(User.username == username))
    return result.scalar_one_or_none()


async def get_profile(
    db: AsyncSession, username: str, caller_id: int | None = None
) -> tuple[AuthorRecord, bool]:
    """Return the profile for *username* and whether *caller_id* follows it."""
    user = await _require_user(db, username)
    following = False
    if caller_id is not None:
        following = await SqlFollowGraph(db).is_following(caller_id, user.id)
    return author_record(user), following


async def follow(db: AsyncSession, caller_id: int | None, username: str) -> AuthorRecord:
    """Make *caller_id* follow *username*.  Following twice is a no-op."""
    caller_id = require_caller(caller_id)
    user = await _require_user(db, username)
    if user.id == caller_id:
        raise InvalidInput("username")

    already = (
        await db.execute(
            select(
                exists().where(
                    follows.c.follower_id == caller_id, follows.c.followee_id == user.id
                )
            )
        )
    ).scalar()
    if not already:
        await db.execute(follows.insert().values(follower_id=caller_id, followee_id=user.id))
        await db.flush()
    return author_record(user)


async def unfollow(db: AsyncSession, caller_id: int | None, username: str) -> AuthorRecord:
    caller_id = require_caller(caller_id)
    user = await _require_user(db, username)
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == caller_id, follows.c.followee_id == user.id
        )
    )
    await db.flush()
    return author_record(user)

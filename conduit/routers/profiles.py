from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_caller_id
from conduit.presenters import present_profile
from conduit.schemas import NewUserRequest, ProfileEnvelope, UserEnvelope, UserResponse
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["profiles"])


@router.post("/users", status_code=201, response_model=UserEnvelope)
async def register_user(data: NewUserRequest, db: AsyncSession = Depends(get_db)):
    author = await user_service.create_user(db, data.user)
    return UserEnvelope(
        user=UserResponse(
            id=author.id,
            username=author.username,
            email=data.user.email,
            bio=author.bio,
            image=author.image,
        )
    )


@router.get("/profiles/{username}", response_model=ProfileEnvelope)
async def get_profile(
    username: str,
    caller_id: int | None = Depends(get_caller_id),
    db: AsyncSession = Depends(get_db),
):
    author, following = await user_service.get_profile(db, username, caller_id)
    return ProfileEnvelope(profile=present_profile(author, following))


@router.post("/profiles/{username}/follow", response_model=ProfileEnvelope)
async def follow_user(
    username: str,
    caller_id: int | None = Depends(get_caller_id),
    db: AsyncSession = Depends(get_db),
):
    author = await user_service.follow(db, caller_id, username)
    return ProfileEnvelope(profile=present_profile(author, following=True))


@router.delete("/profiles/{username}/follow", response_model=ProfileEnvelope)
async def unfollow_user(
    username: str,
    caller_id: int | None = Depends(get_caller_id),
    db: AsyncSession = Depends(get_db),
):
    author = await user_service.unfollow(db, caller_id, username)
    return ProfileEnvelope(profile=present_profile(author, following=False))

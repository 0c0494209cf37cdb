"""User directory and follow-graph endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from nutri_social.api.v1.dependencies import (
    CurrentUserDep,
    InteractionServiceDep,
    ListingServiceDep,
)
from nutri_social.schemas.challenge import UserChallengeResponse
from nutri_social.schemas.common import FollowState
from nutri_social.schemas.post import PostResponse
from nutri_social.schemas.recipe import RecipeResponse
from nutri_social.schemas.user import UserSummary

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserSummary])
async def list_users(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[UserSummary]:
    """List users with public fields only."""
    return listings.list_users()


@router.post("/{user_id}/follow", response_model=FollowState)
def toggle_follow(
    user_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> FollowState:
    """Follow the user, or unfollow if already following."""
    return FollowState(following=interactions.toggle_follow(current_user.id, user_id))


@router.get("/{user_id}/followers", response_model=list[UserSummary])
async def list_followers(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[UserSummary]:
    return listings.list_followers(user_id)


@router.get("/{user_id}/following", response_model=list[UserSummary])
async def list_following(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[UserSummary]:
    return listings.list_following(user_id)


@router.get("/{user_id}/is-following", response_model=FollowState)
async def is_following(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> FollowState:
    """Whether the current user follows ``user_id``."""
    return FollowState(following=listings.is_following(current_user.id, user_id))


@router.get("/{user_id}/posts", response_model=list[PostResponse])
async def list_user_posts(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[PostResponse]:
    return listings.list_user_posts(user_id, current_user.id, page=page, limit=limit)


@router.get("/{user_id}/recipes", response_model=list[RecipeResponse])
async def list_user_recipes(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[RecipeResponse]:
    return listings.list_user_recipes(user_id, current_user.id)


@router.get("/{user_id}/challenges", response_model=list[UserChallengeResponse])
async def list_user_challenges(
    user_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[UserChallengeResponse]:
    return listings.list_user_challenges(user_id)

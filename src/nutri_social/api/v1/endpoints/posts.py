# src/nutri_social/api/v1/endpoints/posts.py
"""Post-related endpoints for the NutriSocial API."""

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from nutri_social.api.v1.dependencies import (
    CurrentUserDep,
    InteractionServiceDep,
    ListingServiceDep,
)
from nutri_social.schemas.common import LikeState
from nutri_social.schemas.post import (
    CommentCreate,
    CommentResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
)
from nutri_social.services.listings import to_comment_response, to_post_response

router = APIRouter(prefix="/posts", tags=["posts"])

PageQuery = Annotated[int, Query(ge=1, description="1-based page number")]
LimitQuery = Annotated[int | None, Query(ge=1, description="Maximum number of posts to return")]


@router.get("", response_model=list[PostResponse])
async def list_posts(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> list[PostResponse]:
    """List visible posts, newest first."""
    return listings.list_posts(current_user.id, page=page, limit=limit)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    post_data: PostCreate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> PostResponse:
    """Create a new post authored by the current user."""
    post = interactions.create_post(current_user.id, post_data)
    return to_post_response(post)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> PostResponse:
    return listings.get_post(post_id, current_user.id)


@router.patch("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    post_data: PostUpdate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
    listings: ListingServiceDep,
) -> PostResponse:
    interactions.update_post(post_id, current_user.id, post_data)
    return listings.get_post(post_id, current_user.id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> Response:
    """Hide a post from every listing."""
    interactions.delete_post(post_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", response_model=LikeState)
def toggle_post_like(
    post_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> LikeState:
    """Like the post, or remove the like if it is already there."""
    return LikeState(liked=interactions.toggle_post_like(post_id, current_user.id))


@router.get("/{post_id}/is-liked", response_model=LikeState)
async def is_post_liked(
    post_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> LikeState:
    return LikeState(liked=listings.is_post_liked(post_id, current_user.id))


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[CommentResponse]:
    """List the comments of a post, oldest first."""
    return listings.list_comments(post_id, current_user.id)


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    post_id: int,
    comment_data: CommentCreate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> CommentResponse:
    comment = interactions.add_comment(post_id, current_user.id, comment_data.content)
    return to_comment_response(comment)

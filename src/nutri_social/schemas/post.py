"""Post and comment Pydantic schemas."""

from typing import Literal

from pydantic import Field

from .common import CamelModel, UtcDateTime

PostType = Literal["general", "meal", "achievement", "challenge", "recipe"]


class PostCreate(CamelModel):
    """Schema for creating a new post."""

    content: str = Field(..., min_length=1, max_length=5000, description="Post body")
    image_url: str | None = Field(None, max_length=2048)
    type: PostType = "general"
    linked_meal_id: int | None = Field(None, description="Meal shared with this post")
    linked_challenge_id: int | None = Field(None, description="Challenge this post refers to")
    linked_recipe_id: int | None = Field(None, description="Community recipe this post refers to")


class PostUpdate(CamelModel):
    """Fields an author may change on an existing post."""

    content: str | None = Field(None, min_length=1, max_length=5000)
    image_url: str | None = Field(None, max_length=2048)
    type: PostType | None = None


class PostResponse(CamelModel):
    """Schema for post information returned by the API."""

    id: int
    author_id: int
    content: str
    image_url: str | None
    linked_meal_id: int | None
    linked_challenge_id: int | None
    linked_recipe_id: int | None
    type: str
    likes_count: int
    comments_count: int
    is_visible: bool
    created_at: UtcDateTime
    updated_at: UtcDateTime
    liked_by_me: bool = False


class CommentCreate(CamelModel):
    """Schema for commenting on a post."""

    content: str = Field(..., min_length=1, max_length=2000)


class CommentUpdate(CommentCreate):
    """Replacement content for an existing comment."""


class CommentResponse(CamelModel):
    """Schema for comment information returned by the API."""

    id: int
    post_id: int
    author_id: int
    content: str
    likes_count: int
    created_at: UtcDateTime
    updated_at: UtcDateTime
    liked_by_me: bool = False

"""SQLAlchemy models for social posts and their comments."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from nutri_social.db.session import Base
from nutri_social.db.time import utcnow

POST_TYPES = ("general", "meal", "achievement", "challenge", "recipe")


class Post(Base):
    """Feed entry written by a user.

    ``likes_count`` and ``comments_count`` are denormalized: they always equal
    the number of ``post_likes`` and ``post_comments`` rows for this post.
    Deleting a post only hides it.
    """

    __tablename__ = "social_posts"
    __table_args__ = (
        Index("ix_social_posts_visible_created", "is_visible", "created_at"),
        Index("ix_social_posts_author_id", "author_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Meals live in the tracking service; only the identifier is kept here.
    linked_meal_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    linked_challenge_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True
    )
    linked_recipe_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community_recipes.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False, default="general")
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class PostComment(Base):
    """Comment on a post. Hard-deleted together with its likes."""

    __tablename__ = "post_comments"
    __table_args__ = (Index("ix_post_comments_post_id", "post_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("social_posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

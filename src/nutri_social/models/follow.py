"""Directed follow edges between users."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from nutri_social.db.session import Base
from nutri_social.db.time import utcnow


class UserFollower(Base):
    """``follower_id`` follows ``following_id``."""

    __tablename__ = "user_followers"
    __table_args__ = (
        CheckConstraint("follower_id <> following_id", name="ck_user_followers_not_self"),
        Index("ix_user_followers_following_id", "following_id"),
    )

    follower_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    following_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

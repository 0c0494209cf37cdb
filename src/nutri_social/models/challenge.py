"""SQLAlchemy models for community challenges and their participants."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from nutri_social.db.session import Base
from nutri_social.db.time import utcnow


class Challenge(Base):
    """Time-boxed goal users can join, e.g. "drink 2000 ml for 7 days"."""

    __tablename__ = "challenges"
    __table_args__ = (Index("ix_challenges_active_window", "is_active", "start_date", "end_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    goal: Mapped[str] = mapped_column(Text, nullable=False)
    # Unit of goal_value: "days", "meals", "ml", "steps", ...
    goal_type: Mapped[str] = mapped_column(Text, nullable=False)
    goal_value: Mapped[int] = mapped_column(Integer, nullable=False)
    rewards: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ChallengeParticipant(Base):
    """Membership of a user in a challenge plus their progress.

    ``completed`` implies ``progress >= challenge.goal_value`` and a
    ``completed_date``.
    """

    __tablename__ = "challenge_participants"
    __table_args__ = (Index("ix_challenge_participants_user_id", "user_id"),)

    challenge_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("challenges.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    join_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

"""Challenge-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from .common import CamelModel, UtcDateTime


class ChallengeCreate(CamelModel):
    """Schema for creating a community challenge."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    start_date: datetime
    end_date: datetime
    goal: str = Field(..., min_length=1)
    goal_type: str = Field(..., min_length=1, description="Unit of goal_value, e.g. days or ml")
    goal_value: int = Field(..., gt=0)
    rewards: dict[str, Any] | None = None
    is_active: bool = True


class ChallengeUpdate(CamelModel):
    """Partial update of a challenge."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    goal: str | None = Field(None, min_length=1)
    goal_type: str | None = Field(None, min_length=1)
    goal_value: int | None = Field(None, gt=0)
    rewards: dict[str, Any] | None = None
    is_active: bool | None = None


class ChallengeResponse(CamelModel):
    """Schema for challenge information returned by the API."""

    id: int
    title: str
    description: str
    start_date: UtcDateTime
    end_date: UtcDateTime
    goal: str
    goal_type: str
    goal_value: int
    rewards: dict[str, Any] | None
    is_active: bool
    created_at: UtcDateTime


class ProgressUpdate(CamelModel):
    """New absolute progress value for the current user."""

    progress: int = Field(..., ge=0)


class ParticipantResponse(CamelModel):
    """Schema for a user's participation in a challenge."""

    challenge_id: int
    user_id: int
    join_date: UtcDateTime
    progress: int
    completed: bool
    completed_date: UtcDateTime | None


class UserChallengeResponse(CamelModel):
    """A challenge paired with the user's participation row."""

    challenge: ChallengeResponse
    participant: ParticipantResponse

"""Pydantic schemas for the NutriSocial API."""

from .challenge import (
    ChallengeCreate,
    ChallengeResponse,
    ChallengeUpdate,
    ParticipantResponse,
    ProgressUpdate,
    UserChallengeResponse,
)
from .common import CamelModel, FavoriteState, FollowState, LikeState
from .post import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    PostCreate,
    PostResponse,
    PostUpdate,
)
from .recipe import (
    Macros,
    RatingCreate,
    RatingResponse,
    RecipeCreate,
    RecipeResponse,
    RecipeUpdate,
)
from .user import UserSummary

__all__ = [
    "CamelModel", "FavoriteState", "FollowState", "LikeState",
    "ChallengeCreate", "ChallengeResponse", "ChallengeUpdate",
    "ParticipantResponse", "ProgressUpdate", "UserChallengeResponse",
    "CommentCreate", "CommentResponse", "CommentUpdate",
    "PostCreate", "PostResponse", "PostUpdate",
    "Macros", "RatingCreate", "RatingResponse",
    "RecipeCreate", "RecipeResponse", "RecipeUpdate",
    "UserSummary",
]

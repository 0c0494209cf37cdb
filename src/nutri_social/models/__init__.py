"""SQLAlchemy models for the NutriSocial service."""

from .challenge import Challenge, ChallengeParticipant
from .follow import UserFollower
from .like import CommentLike, PostLike
from .post import Post, PostComment
from .recipe import CommunityRecipe, RecipeFavorite, RecipeRating
from .user import User

__all__ = [
    "Challenge", "ChallengeParticipant",
    "UserFollower",
    "CommentLike", "PostLike",
    "Post", "PostComment",
    "CommunityRecipe", "RecipeFavorite", "RecipeRating",
    "User",
]

"""API endpoint modules for version 1."""

from .challenges import router as challenges_router
from .comments import router as comments_router
from .posts import router as posts_router
from .recipes import router as recipes_router
from .users import router as users_router

__all__ = [
    "challenges_router",
    "comments_router",
    "posts_router",
    "recipes_router",
    "users_router",
]

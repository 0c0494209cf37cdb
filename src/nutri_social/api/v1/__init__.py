"""Version 1 API endpoints, mounted under ``/api/social``."""

from fastapi import APIRouter

from .endpoints import (
    challenges_router,
    comments_router,
    posts_router,
    recipes_router,
    users_router,
)

api_router = APIRouter(prefix="/api/social")
api_router.include_router(posts_router)
api_router.include_router(comments_router)
api_router.include_router(challenges_router)
api_router.include_router(recipes_router)
api_router.include_router(users_router)

__all__ = [
    "api_router",
    "challenges_router",
    "comments_router",
    "posts_router",
    "recipes_router",
    "users_router",
]

"""Read-side queries that build API views from repository rows."""
from __future__ import annotations

import logging
from datetime import datetime

from nutri_social.core.exceptions import InvalidInputError, NotFoundError
from nutri_social.core.settings import settings
from nutri_social.db.time import as_utc, utcnow
from nutri_social.models import Challenge, CommunityRecipe, Post, PostComment, User
from nutri_social.repositories.base import RelationKind, SocialRepository
from nutri_social.schemas.challenge import (
    ChallengeResponse,
    ParticipantResponse,
    UserChallengeResponse,
)
from nutri_social.schemas.post import CommentResponse, PostResponse
from nutri_social.schemas.recipe import RatingResponse, RecipeResponse
from nutri_social.schemas.user import UserSummary

logger = logging.getLogger(__name__)


def to_post_response(post: Post, *, liked_by_me: bool = False) -> PostResponse:
    """Convert a Post ORM instance to an API schema."""
    return PostResponse.model_validate(post).model_copy(update={"liked_by_me": liked_by_me})


def to_comment_response(comment: PostComment, *, liked_by_me: bool = False) -> CommentResponse:
    return CommentResponse.model_validate(comment).model_copy(update={"liked_by_me": liked_by_me})


def to_recipe_response(recipe: CommunityRecipe, **extra: object) -> RecipeResponse:
    return RecipeResponse.model_validate(recipe).model_copy(update=extra)


def to_user_summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, username=user.username, display_name=user.display_name)


class ListingService:
    """Paginated feeds, detail lookups and relation-aware annotations."""

    def __init__(
        self,
        repository: SocialRepository,
        *,
        default_page_size: int | None = None,
        max_page_size: int | None = None,
    ) -> None:
        self.repository = repository
        self.default_page_size = default_page_size or settings.default_page_size
        self.max_page_size = max_page_size or settings.max_page_size

    def page_window(self, page: int = 1, limit: int | None = None) -> tuple[int, int]:
        """Translate a 1-based page and limit into an (offset, limit) pair."""
        if limit is None:
            limit = self.default_page_size
        if page < 1:
            raise InvalidInputError("Page must be 1 or greater", field="page")
        if not 1 <= limit <= self.max_page_size:
            raise InvalidInputError(
                f"Limit must be between 1 and {self.max_page_size}", field="limit"
            )
        return (page - 1) * limit, limit

    # Posts and comments ------------------------------------------------

    def _annotate_posts(self, posts: list[Post], viewer_id: int) -> list[PostResponse]:
        likes = self.repository.relation(RelationKind.POST_LIKE)
        return [
            to_post_response(post, liked_by_me=likes.exists(viewer_id, post.id)) for post in posts
        ]

    def list_posts(self, viewer_id: int, page: int = 1, limit: int | None = None) -> list[PostResponse]:
        """Visible posts from everyone, newest first."""
        offset, limit = self.page_window(page, limit)
        posts = self.repository.list_posts(offset=offset, limit=limit)
        return self._annotate_posts(posts, viewer_id)

    def list_user_posts(
        self,
        user_id: int,
        viewer_id: int,
        page: int = 1,
        limit: int | None = None,
    ) -> list[PostResponse]:
        offset, limit = self.page_window(page, limit)
        posts = self.repository.list_posts(offset=offset, limit=limit, author_id=user_id)
        return self._annotate_posts(posts, viewer_id)

    def _visible_post(self, post_id: int) -> Post:
        post = self.repository.get_post(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def get_post(self, post_id: int, viewer_id: int) -> PostResponse:
        post = self._visible_post(post_id)
        liked = self.repository.relation(RelationKind.POST_LIKE).exists(viewer_id, post_id)
        return to_post_response(post, liked_by_me=liked)

    def is_post_liked(self, post_id: int, user_id: int) -> bool:
        self._visible_post(post_id)
        return self.repository.relation(RelationKind.POST_LIKE).exists(user_id, post_id)

    def list_comments(self, post_id: int, viewer_id: int) -> list[CommentResponse]:
        """Comments of a visible post, oldest first."""
        self._visible_post(post_id)
        likes = self.repository.relation(RelationKind.COMMENT_LIKE)
        return [
            to_comment_response(comment, liked_by_me=likes.exists(viewer_id, comment.id))
            for comment in self.repository.list_comments(post_id)
        ]

    # Challenges --------------------------------------------------------

    def list_challenges(self) -> list[ChallengeResponse]:
        return [ChallengeResponse.model_validate(c) for c in self.repository.list_challenges()]

    def list_active_challenges(self, now: datetime | None = None) -> list[ChallengeResponse]:
        """Challenges flagged active whose date window contains ``now``."""
        moment = as_utc(now) if now is not None else utcnow()
        return [
            ChallengeResponse.model_validate(c)
            for c in self.repository.list_active_challenges(moment)
        ]

    def _challenge(self, challenge_id: int) -> Challenge:
        challenge = self.repository.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge not found")
        return challenge

    def get_challenge(self, challenge_id: int) -> ChallengeResponse:
        return ChallengeResponse.model_validate(self._challenge(challenge_id))

    def list_challenge_participants(self, challenge_id: int) -> list[ParticipantResponse]:
        self._challenge(challenge_id)
        return [
            ParticipantResponse.model_validate(p)
            for p in self.repository.list_participants(challenge_id)
        ]

    def list_user_challenges(self, user_id: int) -> list[UserChallengeResponse]:
        """Participations of a user joined with their challenge, latest join first."""
        results: list[UserChallengeResponse] = []
        for participant in self.repository.list_user_participations(user_id):
            challenge = self.repository.get_challenge(participant.challenge_id)
            if challenge is None:
                logger.debug(
                    "Skipping participation of user %s in missing challenge %s",
                    user_id,
                    participant.challenge_id,
                )
                continue
            results.append(
                UserChallengeResponse(
                    challenge=ChallengeResponse.model_validate(challenge),
                    participant=ParticipantResponse.model_validate(participant),
                )
            )
        return results

    # Recipes -----------------------------------------------------------

    def _annotate_recipes(
        self, recipes: list[CommunityRecipe], viewer_id: int
    ) -> list[RecipeResponse]:
        favorites = self.repository.relation(RelationKind.RECIPE_FAVORITE)
        return [
            to_recipe_response(recipe, favorited_by_me=favorites.exists(viewer_id, recipe.id))
            for recipe in recipes
        ]

    def list_recipes(
        self, viewer_id: int, page: int = 1, limit: int | None = None
    ) -> list[RecipeResponse]:
        """Public recipes, newest first."""
        offset, limit = self.page_window(page, limit)
        recipes = self.repository.list_public_recipes(offset=offset, limit=limit)
        return self._annotate_recipes(recipes, viewer_id)

    def _visible_recipe(self, recipe_id: int, viewer_id: int) -> CommunityRecipe:
        recipe = self.repository.get_recipe(recipe_id)
        if recipe is None or (not recipe.is_public and recipe.author_id != viewer_id):
            raise NotFoundError("Recipe not found")
        return recipe

    def rating_summary(self, recipe_id: int) -> tuple[float | None, int]:
        """Return the average rating (rounded to 2 places) and the number of ratings."""
        ratings = [r.rating for r in self.repository.list_ratings(recipe_id)]
        if not ratings:
            return None, 0
        return round(sum(ratings) / len(ratings), 2), len(ratings)

    def get_recipe(self, recipe_id: int, viewer_id: int) -> RecipeResponse:
        recipe = self._visible_recipe(recipe_id, viewer_id)
        average, count = self.rating_summary(recipe_id)
        favorited = self.repository.relation(RelationKind.RECIPE_FAVORITE).exists(
            viewer_id, recipe_id
        )
        return to_recipe_response(
            recipe, favorited_by_me=favorited, average_rating=average, ratings_count=count
        )

    def list_user_recipes(self, user_id: int, viewer_id: int) -> list[RecipeResponse]:
        """A user's recipes; private ones are included only for the author."""
        recipes = self.repository.list_user_recipes(user_id, public_only=user_id != viewer_id)
        return self._annotate_recipes(recipes, viewer_id)

    def list_user_favorite_recipes(self, user_id: int) -> list[RecipeResponse]:
        """Recipes the user favorited, most recently added first.

        Favorites pointing at recipes that were deleted or made private by
        someone else are skipped.
        """
        recipe_ids = self.repository.relation(RelationKind.RECIPE_FAVORITE).objects_for(user_id)
        recipes = [
            recipe
            for recipe in self.repository.get_recipes(recipe_ids, public_only=False)
            if recipe.is_public or recipe.author_id == user_id
        ]
        return [to_recipe_response(recipe, favorited_by_me=True) for recipe in recipes]

    def list_recipe_ratings(self, recipe_id: int, viewer_id: int) -> list[RatingResponse]:
        self._visible_recipe(recipe_id, viewer_id)
        return [RatingResponse.model_validate(r) for r in self.repository.list_ratings(recipe_id)]

    # Users and the follow graph ----------------------------------------

    def list_users(self) -> list[UserSummary]:
        return [to_user_summary(user) for user in self.repository.list_users()]

    def _require_user(self, user_id: int) -> None:
        if self.repository.get_user(user_id) is None:
            raise NotFoundError("User not found")

    def list_followers(self, user_id: int) -> list[UserSummary]:
        """Users following ``user_id``, most recent first."""
        self._require_user(user_id)
        follower_ids = self.repository.relation(RelationKind.USER_FOLLOWER).subjects_for(user_id)
        return [to_user_summary(user) for user in self.repository.get_users(follower_ids)]

    def list_following(self, user_id: int) -> list[UserSummary]:
        """Users that ``user_id`` follows, most recent first."""
        self._require_user(user_id)
        following_ids = self.repository.relation(RelationKind.USER_FOLLOWER).objects_for(user_id)
        return [to_user_summary(user) for user in self.repository.get_users(following_ids)]

    def is_following(self, follower_id: int, following_id: int) -> bool:
        return self.repository.relation(RelationKind.USER_FOLLOWER).exists(
            follower_id, following_id
        )

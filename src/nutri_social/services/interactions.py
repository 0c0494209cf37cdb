"""Write-side operations on the social graph.

Every mutation runs as one unit of work on the repository: the relation row
and the counter it drives are written together or not at all. Units that hit
a storage write conflict are retried a bounded number of times before the
:class:`~nutri_social.core.exceptions.ConflictError` reaches the caller.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from pydantic.alias_generators import to_camel
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from nutri_social.core.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
)
from nutri_social.core.settings import settings
from nutri_social.db.time import as_utc, utcnow
from nutri_social.models import (
    Challenge,
    ChallengeParticipant,
    CommunityRecipe,
    Post,
    PostComment,
    RecipeRating,
    User,
)
from nutri_social.repositories.base import CounterTarget, RelationKind, SocialRepository
from nutri_social.schemas.challenge import ChallengeCreate, ChallengeUpdate
from nutri_social.schemas.post import PostCreate, PostUpdate
from nutri_social.schemas.recipe import RecipeCreate, RecipeUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_RATING = 1
MAX_RATING = 5

# Columns a partial update may leave out but never set to null.
REQUIRED_CHALLENGE_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "goal",
    "goal_type",
    "goal_value",
    "is_active",
)
REQUIRED_RECIPE_FIELDS = (
    "title",
    "ingredients",
    "instructions",
    "prep_time",
    "cook_time",
    "servings",
    "is_public",
)


def reject_nulls(values: dict[str, Any], required: tuple[str, ...]) -> None:
    """Raise InvalidInputError for the first required field explicitly set to null."""
    for name in required:
        if name in values and values[name] is None:
            field = to_camel(name)
            raise InvalidInputError(f"{field} cannot be null", field=field)


class InteractionService:
    """Likes, follows, favorites, ratings, challenge progress and authoring."""

    def __init__(self, repository: SocialRepository, *, max_attempts: int | None = None) -> None:
        self.repository = repository
        self.max_attempts = max_attempts or settings.conflict_max_attempts

    # Units of work -----------------------------------------------------

    def _run_unit(self, operation: Callable[[], T]) -> T:
        with self.repository.atomic():
            return operation()

    def _transact(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` atomically, retrying on write conflicts."""
        retrying = Retrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.01, max=0.2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._run_unit, operation)

    def _toggle(
        self,
        kind: RelationKind,
        subject_id: int,
        object_id: int,
        counter: CounterTarget | None = None,
    ) -> bool:
        present = self.repository.relation(kind).exists(subject_id, object_id)
        return self._set(kind, subject_id, object_id, not present, counter, present=present)

    def _set(
        self,
        kind: RelationKind,
        subject_id: int,
        object_id: int,
        desired: bool,
        counter: CounterTarget | None = None,
        *,
        present: bool | None = None,
    ) -> bool:
        """Bring the pair to ``desired``; the counter moves only on a real change."""
        relation = self.repository.relation(kind)
        if present is None:
            present = relation.exists(subject_id, object_id)
        if desired and not present:
            relation.add(subject_id, object_id)
            if counter is not None:
                self.repository.increment_counter(counter, object_id)
        elif present and not desired:
            # A competing unit may have removed the pair after our read.
            if relation.remove(subject_id, object_id) and counter is not None:
                self.repository.decrement_counter(counter, object_id)
        logger.debug(
            "%s %s -> %s now %s", kind.value, subject_id, object_id, "on" if desired else "off"
        )
        return desired

    # Lookups -----------------------------------------------------------

    def _require_user(self, user_id: int) -> User:
        user = self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _require_post(self, post_id: int) -> Post:
        post = self.repository.get_post(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def _require_comment(self, comment_id: int) -> PostComment:
        comment = self.repository.get_comment(comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    def _require_challenge(self, challenge_id: int) -> Challenge:
        challenge = self.repository.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge not found")
        return challenge

    def _require_recipe(self, recipe_id: int, viewer_id: int) -> CommunityRecipe:
        """Return the recipe if ``viewer_id`` may see it; private recipes look missing."""
        recipe = self.repository.get_recipe(recipe_id)
        if recipe is None or (not recipe.is_public and recipe.author_id != viewer_id):
            raise NotFoundError("Recipe not found")
        return recipe

    # Likes -------------------------------------------------------------

    def toggle_post_like(self, post_id: int, user_id: int) -> bool:
        """Flip the user's like on a post and return whether it is now liked."""

        def operation() -> bool:
            self._require_post(post_id)
            return self._toggle(RelationKind.POST_LIKE, user_id, post_id, CounterTarget.POST_LIKES)

        return self._transact(operation)

    def set_post_like(self, post_id: int, user_id: int, liked: bool) -> bool:
        """Idempotent like/unlike: repeating the same call changes nothing."""

        def operation() -> bool:
            self._require_post(post_id)
            return self._set(
                RelationKind.POST_LIKE, user_id, post_id, liked, CounterTarget.POST_LIKES
            )

        return self._transact(operation)

    def toggle_comment_like(self, comment_id: int, user_id: int) -> bool:
        """Flip the user's like on a comment and return whether it is now liked."""

        def operation() -> bool:
            comment = self._require_comment(comment_id)
            self._require_post(comment.post_id)
            return self._toggle(
                RelationKind.COMMENT_LIKE, user_id, comment_id, CounterTarget.COMMENT_LIKES
            )

        return self._transact(operation)

    # Follows -----------------------------------------------------------

    def toggle_follow(self, follower_id: int, following_id: int) -> bool:
        """Follow or unfollow ``following_id``; return whether the edge now exists."""
        if follower_id == following_id:
            raise InvalidOperationError("You cannot follow yourself")

        def operation() -> bool:
            self._require_user(following_id)
            return self._toggle(RelationKind.USER_FOLLOWER, follower_id, following_id)

        return self._transact(operation)

    def follow(self, follower_id: int, following_id: int) -> bool:
        if follower_id == following_id:
            raise InvalidOperationError("You cannot follow yourself")

        def operation() -> bool:
            self._require_user(following_id)
            return self._set(RelationKind.USER_FOLLOWER, follower_id, following_id, True)

        return self._transact(operation)

    def unfollow(self, follower_id: int, following_id: int) -> bool:
        return self._transact(
            lambda: self._set(RelationKind.USER_FOLLOWER, follower_id, following_id, False)
        )

    # Recipes: favorites and ratings -------------------------------------

    def toggle_recipe_favorite(self, recipe_id: int, user_id: int) -> bool:
        """Flip the favorite flag and return whether the recipe is now a favorite."""

        def operation() -> bool:
            self._require_recipe(recipe_id, user_id)
            return self._toggle(RelationKind.RECIPE_FAVORITE, user_id, recipe_id)

        return self._transact(operation)

    def rate_recipe(
        self,
        recipe_id: int,
        user_id: int,
        rating: int,
        comment: str | None = None,
    ) -> RecipeRating:
        """Create or replace the user's single rating of a recipe.

        A concurrent first rating by the same user trips the unique key; the
        retry then finds that row and updates it.
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidInputError("Rating must be a whole number", field="rating")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidInputError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}", field="rating"
            )

        def operation() -> RecipeRating:
            self._require_recipe(recipe_id, user_id)
            existing = self.repository.get_rating(recipe_id, user_id)
            if existing is not None:
                return self.repository.update(existing, rating=rating, comment=comment)
            return self.repository.add_rating(
                RecipeRating(
                    recipe_id=recipe_id,
                    user_id=user_id,
                    rating=rating,
                    comment=comment,
                    created_at=utcnow(),
                )
            )

        result = self._transact(operation)
        logger.info("User %s rated recipe %s with %s", user_id, recipe_id, rating)
        return result

    def create_recipe(self, author_id: int, payload: RecipeCreate) -> CommunityRecipe:
        values = payload.model_dump()
        values["macros"] = payload.macros.model_dump() if payload.macros else None
        now = utcnow()
        recipe = CommunityRecipe(author_id=author_id, created_at=now, updated_at=now, **values)
        created = self._transact(lambda: self.repository.add_recipe(recipe))
        logger.info("User %s shared recipe %s", author_id, created.id)
        return created

    def update_recipe(self, recipe_id: int, actor_id: int, payload: RecipeUpdate) -> CommunityRecipe:
        values = payload.model_dump(exclude_unset=True)
        reject_nulls(values, REQUIRED_RECIPE_FIELDS)
        if "macros" in values:
            values["macros"] = payload.macros.model_dump() if payload.macros else None

        def operation() -> CommunityRecipe:
            recipe = self._require_recipe(recipe_id, actor_id)
            if recipe.author_id != actor_id:
                raise PermissionDeniedError("Only the author can edit this recipe")
            return self.repository.update(recipe, updated_at=utcnow(), **values)

        return self._transact(operation)

    def delete_recipe(self, recipe_id: int, actor_id: int) -> None:
        def operation() -> None:
            recipe = self._require_recipe(recipe_id, actor_id)
            if recipe.author_id != actor_id:
                raise PermissionDeniedError("Only the author can delete this recipe")
            self.repository.delete_recipe(recipe_id)

        self._transact(operation)
        logger.info("User %s deleted recipe %s", actor_id, recipe_id)

    # Challenges --------------------------------------------------------

    @staticmethod
    def _check_window(start_date: datetime, end_date: datetime) -> None:
        if as_utc(end_date) < as_utc(start_date):
            raise InvalidInputError("End date must not be before start date", field="endDate")

    def create_challenge(self, payload: ChallengeCreate) -> Challenge:
        self._check_window(payload.start_date, payload.end_date)
        values = payload.model_dump()
        values["start_date"] = as_utc(payload.start_date)
        values["end_date"] = as_utc(payload.end_date)
        challenge = Challenge(created_at=utcnow(), **values)
        created = self._transact(lambda: self.repository.add_challenge(challenge))
        logger.info("Created challenge %s (%s)", created.id, created.title)
        return created

    def update_challenge(self, challenge_id: int, payload: ChallengeUpdate) -> Challenge:
        """Apply a partial update.

        A new ``goal_value`` is applied to the participants in the same unit:
        those already at the new goal complete, and raising the goal above the
        progress of someone who completed is refused.
        """
        values = payload.model_dump(exclude_unset=True)
        reject_nulls(values, REQUIRED_CHALLENGE_FIELDS)
        for key in ("start_date", "end_date"):
            if key in values:
                values[key] = as_utc(values[key])

        def operation() -> Challenge:
            challenge = self._require_challenge(challenge_id)
            self._check_window(
                values.get("start_date", challenge.start_date),
                values.get("end_date", challenge.end_date),
            )
            goal_value = values.get("goal_value", challenge.goal_value)
            if goal_value != challenge.goal_value:
                self._apply_goal(challenge_id, goal_value)
            return self.repository.update(challenge, **values)

        return self._transact(operation)

    def _apply_goal(self, challenge_id: int, goal_value: int) -> None:
        participants = self.repository.list_participants(challenge_id)
        if any(p.completed and p.progress < goal_value for p in participants):
            raise InvalidOperationError(
                "Goal cannot be raised above the progress of participants who completed it"
            )
        now = utcnow()
        for participant in participants:
            if not participant.completed and participant.progress >= goal_value:
                self.repository.update(participant, completed=True, completed_date=now)
                logger.info(
                    "User %s completed challenge %s after its goal changed",
                    participant.user_id,
                    challenge_id,
                )

    def join_challenge(self, challenge_id: int, user_id: int) -> tuple[ChallengeParticipant, bool]:
        """Enroll the user; return the participant row and whether it was created."""

        def operation() -> tuple[ChallengeParticipant, bool]:
            self._require_challenge(challenge_id)
            existing = self.repository.get_participant(challenge_id, user_id)
            if existing is not None:
                return existing, False
            participant = ChallengeParticipant(
                challenge_id=challenge_id,
                user_id=user_id,
                join_date=utcnow(),
                progress=0,
                completed=False,
                completed_date=None,
            )
            return self.repository.add_participant(participant), True

        participant, created = self._transact(operation)
        if created:
            logger.info("User %s joined challenge %s", user_id, challenge_id)
        return participant, created

    def _require_participant(self, challenge_id: int, user_id: int) -> ChallengeParticipant:
        participant = self.repository.get_participant(challenge_id, user_id)
        if participant is None:
            raise NotFoundError("You are not participating in this challenge")
        return participant

    def update_progress(self, challenge_id: int, user_id: int, progress: int) -> ChallengeParticipant:
        """Store absolute progress; reaching the goal completes the challenge once."""
        if progress < 0:
            raise InvalidInputError("Progress cannot be negative", field="progress")

        def operation() -> ChallengeParticipant:
            challenge = self._require_challenge(challenge_id)
            participant = self._require_participant(challenge_id, user_id)
            values: dict[str, Any] = {"progress": progress}
            if progress >= challenge.goal_value:
                if not participant.completed:
                    values.update(completed=True, completed_date=utcnow())
            elif participant.completed:
                raise InvalidOperationError(
                    "Progress cannot drop below the goal of a completed challenge"
                )
            return self.repository.update(participant, **values)

        participant = self._transact(operation)
        logger.debug("User %s at %s on challenge %s", user_id, progress, challenge_id)
        return participant

    def complete_challenge(self, challenge_id: int, user_id: int) -> ChallengeParticipant:
        """Mark the participation complete regardless of current progress."""

        def operation() -> ChallengeParticipant:
            challenge = self._require_challenge(challenge_id)
            participant = self._require_participant(challenge_id, user_id)
            return self.repository.update(
                participant,
                progress=challenge.goal_value,
                completed=True,
                completed_date=utcnow(),
            )

        participant = self._transact(operation)
        logger.info("User %s completed challenge %s", user_id, challenge_id)
        return participant

    # Posts and comments ------------------------------------------------

    def _check_links(self, challenge_id: int | None, recipe_id: int | None, author_id: int) -> None:
        if challenge_id is not None and self.repository.get_challenge(challenge_id) is None:
            raise InvalidInputError("Linked challenge does not exist", field="linkedChallengeId")
        if recipe_id is not None:
            recipe = self.repository.get_recipe(recipe_id)
            if recipe is None or (not recipe.is_public and recipe.author_id != author_id):
                raise InvalidInputError("Linked recipe does not exist", field="linkedRecipeId")

    def create_post(self, author_id: int, payload: PostCreate) -> Post:
        content = payload.content.strip()
        if not content:
            raise InvalidInputError("Content is required", field="content")

        def operation() -> Post:
            self._check_links(payload.linked_challenge_id, payload.linked_recipe_id, author_id)
            now = utcnow()
            return self.repository.add_post(
                Post(
                    author_id=author_id,
                    content=content,
                    image_url=payload.image_url,
                    type=payload.type,
                    linked_meal_id=payload.linked_meal_id,
                    linked_challenge_id=payload.linked_challenge_id,
                    linked_recipe_id=payload.linked_recipe_id,
                    likes_count=0,
                    comments_count=0,
                    is_visible=True,
                    created_at=now,
                    updated_at=now,
                )
            )

        post = self._transact(operation)
        logger.info("User %s created post %s", author_id, post.id)
        return post

    def update_post(self, post_id: int, actor_id: int, payload: PostUpdate) -> Post:
        values = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "content" in values:
            values["content"] = values["content"].strip()
            if not values["content"]:
                raise InvalidInputError("Content is required", field="content")

        def operation() -> Post:
            post = self._require_post(post_id)
            if post.author_id != actor_id:
                raise PermissionDeniedError("Only the author can edit this post")
            return self.repository.update(post, updated_at=utcnow(), **values)

        return self._transact(operation)

    def delete_post(self, post_id: int, actor_id: int) -> None:
        """Hide a post. Its likes and comments stay so counters remain exact."""

        def operation() -> None:
            post = self._require_post(post_id)
            if post.author_id != actor_id:
                raise PermissionDeniedError("Only the author can delete this post")
            self.repository.soft_delete_post(post_id)

        self._transact(operation)
        logger.info("User %s deleted post %s", actor_id, post_id)

    def add_comment(self, post_id: int, author_id: int, content: str) -> PostComment:
        text = content.strip()
        if not text:
            raise InvalidInputError("Content is required", field="content")

        def operation() -> PostComment:
            self._require_post(post_id)
            now = utcnow()
            comment = self.repository.add_comment(
                PostComment(
                    post_id=post_id,
                    author_id=author_id,
                    content=text,
                    likes_count=0,
                    created_at=now,
                    updated_at=now,
                )
            )
            self.repository.increment_counter(CounterTarget.POST_COMMENTS, post_id)
            return comment

        comment = self._transact(operation)
        logger.debug("User %s commented %s on post %s", author_id, comment.id, post_id)
        return comment

    def update_comment(self, comment_id: int, actor_id: int, content: str) -> PostComment:
        text = content.strip()
        if not text:
            raise InvalidInputError("Content is required", field="content")

        def operation() -> PostComment:
            comment = self._require_comment(comment_id)
            if comment.author_id != actor_id:
                raise PermissionDeniedError("Only the author can edit this comment")
            return self.repository.update(comment, content=text, updated_at=utcnow())

        return self._transact(operation)

    def delete_comment(self, comment_id: int, actor_id: int) -> None:
        """Remove a comment with its likes and decrement the post's comment count.

        The comment's author and the author of the post may both delete it.
        """

        def operation() -> None:
            comment = self._require_comment(comment_id)
            post = self.repository.get_post(comment.post_id, include_hidden=True)
            allowed = {comment.author_id}
            if post is not None:
                allowed.add(post.author_id)
            if actor_id not in allowed:
                raise PermissionDeniedError("You cannot delete this comment")
            removed = self.repository.relation(RelationKind.COMMENT_LIKE).remove_all_for_object(
                comment_id
            )
            if not self.repository.delete_comment(comment_id):
                logger.debug("Comment %s was already deleted", comment_id)
                return
            self.repository.decrement_counter(CounterTarget.POST_COMMENTS, comment.post_id)
            logger.debug("Dropped %s likes with comment %s", removed, comment_id)

        self._transact(operation)
        logger.info("User %s deleted comment %s", actor_id, comment_id)

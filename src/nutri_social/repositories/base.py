"""Persistence interfaces consumed by the interaction and listing services.

Two implementations exist: :class:`~nutri_social.repositories.sql.SqlSocialRepository`
backed by a SQLAlchemy session and
:class:`~nutri_social.repositories.memory.InMemorySocialRepository` for tests
and local runs without a database. Both return the ORM model classes from
:mod:`nutri_social.models`; the in-memory store simply never attaches them to
a session.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from nutri_social.models import (
    Challenge,
    ChallengeParticipant,
    CommunityRecipe,
    Post,
    PostComment,
    RecipeRating,
    User,
)

__all__ = [
    "CounterTarget",
    "RelationKind",
    "SocialRepository",
    "ToggleRelationStore",
]

EntityT = TypeVar("EntityT")


class RelationKind(str, Enum):
    """Toggle relations keyed by (subject, object).

    The subject is always the acting user; the object is the liked post or
    comment, the favorited recipe, or the followed user.
    """

    POST_LIKE = "post_like"
    COMMENT_LIKE = "comment_like"
    RECIPE_FAVORITE = "recipe_favorite"
    USER_FOLLOWER = "user_follower"


class CounterTarget(str, Enum):
    """Denormalized counters and the entity attribute that stores them."""

    POST_LIKES = "post_likes"
    POST_COMMENTS = "post_comments"
    COMMENT_LIKES = "comment_likes"

    @property
    def model(self) -> type[Post] | type[PostComment]:
        return PostComment if self is CounterTarget.COMMENT_LIKES else Post

    @property
    def attribute(self) -> str:
        return "comments_count" if self is CounterTarget.POST_COMMENTS else "likes_count"


class ToggleRelationStore(ABC):
    """Existence/absence of one composite-keyed relation.

    ``add`` does not guard against duplicates; callers check ``exists`` first
    inside the same unit of work. ``remove`` of a missing pair changes nothing
    and reports False, which is how a competing removal shows up.
    Counter maintenance is not this store's job.
    """

    kind: RelationKind

    @abstractmethod
    def exists(self, subject_id: int, object_id: int) -> bool:
        """Return True when the pair is present."""

    @abstractmethod
    def add(self, subject_id: int, object_id: int) -> Any:
        """Insert the pair and return the relation row."""

    @abstractmethod
    def remove(self, subject_id: int, object_id: int) -> bool:
        """Delete the pair; return whether a row was actually removed."""

    @abstractmethod
    def objects_for(self, subject_id: int) -> list[int]:
        """Return object ids related to ``subject_id``, newest first."""

    @abstractmethod
    def subjects_for(self, object_id: int) -> list[int]:
        """Return subject ids related to ``object_id``, newest first."""

    @abstractmethod
    def remove_all_for_object(self, object_id: int) -> int:
        """Delete every pair referencing ``object_id``; return how many were removed."""


class SocialRepository(ABC):
    """Counter-backed entity store plus access to the toggle relation stores."""

    # Units of work -----------------------------------------------------

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Return a context manager that commits on success and rolls back on error.

        Storage-level write conflicts raised inside the block surface as
        :class:`~nutri_social.core.exceptions.ConflictError` after rollback.
        """

    @abstractmethod
    def relation(self, kind: RelationKind) -> ToggleRelationStore:
        """Return the store for one toggle relation."""

    @abstractmethod
    def increment_counter(self, target: CounterTarget, entity_id: int) -> None:
        """Add one to the counter."""

    @abstractmethod
    def decrement_counter(self, target: CounterTarget, entity_id: int) -> None:
        """Subtract one from the counter, never going below zero."""

    @abstractmethod
    def update(self, entity: EntityT, **values: Any) -> EntityT:
        """Assign ``values`` to an entity loaded from this repository."""

    # Users -------------------------------------------------------------

    @abstractmethod
    def add_user(self, user: User) -> User: ...

    @abstractmethod
    def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    def get_users(self, user_ids: Iterable[int]) -> list[User]:
        """Return the users that still exist, in the order of ``user_ids``."""

    @abstractmethod
    def list_users(self) -> list[User]: ...

    # Posts and comments ------------------------------------------------

    @abstractmethod
    def add_post(self, post: Post) -> Post: ...

    @abstractmethod
    def get_post(self, post_id: int, *, include_hidden: bool = False) -> Post | None: ...

    @abstractmethod
    def list_posts(
        self,
        *,
        offset: int,
        limit: int,
        author_id: int | None = None,
    ) -> list[Post]:
        """Return visible posts, newest first."""

    @abstractmethod
    def soft_delete_post(self, post_id: int) -> None: ...

    @abstractmethod
    def add_comment(self, comment: PostComment) -> PostComment: ...

    @abstractmethod
    def get_comment(self, comment_id: int) -> PostComment | None: ...

    @abstractmethod
    def list_comments(self, post_id: int) -> list[PostComment]:
        """Return the comments of a post, oldest first."""

    @abstractmethod
    def delete_comment(self, comment_id: int) -> bool:
        """Remove the comment row itself; return False when it was already gone."""

    # Challenges --------------------------------------------------------

    @abstractmethod
    def add_challenge(self, challenge: Challenge) -> Challenge: ...

    @abstractmethod
    def get_challenge(self, challenge_id: int) -> Challenge | None: ...

    @abstractmethod
    def list_challenges(self) -> list[Challenge]: ...

    @abstractmethod
    def list_active_challenges(self, now: datetime) -> list[Challenge]:
        """Return challenges flagged active whose window contains ``now``."""

    @abstractmethod
    def get_participant(self, challenge_id: int, user_id: int) -> ChallengeParticipant | None: ...

    @abstractmethod
    def add_participant(self, participant: ChallengeParticipant) -> ChallengeParticipant: ...

    @abstractmethod
    def list_participants(self, challenge_id: int) -> list[ChallengeParticipant]: ...

    @abstractmethod
    def list_user_participations(self, user_id: int) -> list[ChallengeParticipant]: ...

    # Recipes -----------------------------------------------------------

    @abstractmethod
    def add_recipe(self, recipe: CommunityRecipe) -> CommunityRecipe: ...

    @abstractmethod
    def get_recipe(self, recipe_id: int) -> CommunityRecipe | None: ...

    @abstractmethod
    def list_public_recipes(self, *, offset: int, limit: int) -> list[CommunityRecipe]:
        """Return public recipes, newest first."""

    @abstractmethod
    def list_user_recipes(self, author_id: int, *, public_only: bool) -> list[CommunityRecipe]: ...

    @abstractmethod
    def get_recipes(self, recipe_ids: Iterable[int], *, public_only: bool) -> list[CommunityRecipe]:
        """Return the recipes that still exist, in the order of ``recipe_ids``."""

    @abstractmethod
    def delete_recipe(self, recipe_id: int) -> None:
        """Remove a recipe together with its ratings and favorites."""

    @abstractmethod
    def get_rating(self, recipe_id: int, user_id: int) -> RecipeRating | None: ...

    @abstractmethod
    def add_rating(self, rating: RecipeRating) -> RecipeRating: ...

    @abstractmethod
    def list_ratings(self, recipe_id: int) -> list[RecipeRating]: ...


def ordered_by_ids(rows: Iterable[EntityT], ids: Iterable[int]) -> list[EntityT]:
    """Reorder ``rows`` to follow ``ids``, dropping ids that have no row."""
    by_id = {row.id: row for row in rows}  # type: ignore[attr-defined]
    return [by_id[row_id] for row_id in ids if row_id in by_id]


"""SQLAlchemy-backed repository for the social graph."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from nutri_social.core.exceptions import ConflictError
from nutri_social.models import (
    Challenge,
    ChallengeParticipant,
    CommentLike,
    CommunityRecipe,
    Post,
    PostComment,
    PostLike,
    RecipeFavorite,
    RecipeRating,
    User,
    UserFollower,
)
from nutri_social.repositories.base import (
    CounterTarget,
    RelationKind,
    SocialRepository,
    ToggleRelationStore,
    ordered_by_ids,
)

__all__ = ["SqlRelationStore", "SqlSocialRepository", "is_write_conflict"]

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")

# SQLSTATEs raised when a competing writer wins.
_CONFLICT_SQLSTATES = frozenset({"23505", "40001", "40P01"})
_SQLITE_CONFLICT_MESSAGES = (
    "UNIQUE constraint failed",
    "database is locked",
    "database table is locked",
)


def is_write_conflict(err: DBAPIError) -> bool:
    """Return True when ``err`` comes from a competing writer rather than bad data."""
    sqlstate = getattr(err.orig, "sqlstate", None) or getattr(err.orig, "pgcode", None)
    if sqlstate:
        return sqlstate in _CONFLICT_SQLSTATES
    message = str(err.orig)
    return any(text in message for text in _SQLITE_CONFLICT_MESSAGES)


# kind -> (model, subject column, object column, creation column)
_RELATION_COLUMNS: dict[RelationKind, tuple[type[Any], str, str, str]] = {
    RelationKind.POST_LIKE: (PostLike, "user_id", "post_id", "created_at"),
    RelationKind.COMMENT_LIKE: (CommentLike, "user_id", "comment_id", "created_at"),
    RelationKind.RECIPE_FAVORITE: (RecipeFavorite, "user_id", "recipe_id", "added_at"),
    RelationKind.USER_FOLLOWER: (UserFollower, "follower_id", "following_id", "created_at"),
}


class SqlRelationStore(ToggleRelationStore):
    """Toggle relation stored as a table with a two-column primary key."""

    def __init__(self, session: Session, kind: RelationKind) -> None:
        self.session = session
        self.kind = kind
        model, subject_attr, object_attr, created_attr = _RELATION_COLUMNS[kind]
        self.model = model
        self._subject_attr = subject_attr
        self._object_attr = object_attr
        self._subject = getattr(model, subject_attr)
        self._object = getattr(model, object_attr)
        self._created = getattr(model, created_attr)

    def _pair(self, subject_id: int, object_id: int) -> tuple[Any, Any]:
        return (self._subject == subject_id, self._object == object_id)

    def exists(self, subject_id: int, object_id: int) -> bool:
        result = self.session.execute(
            select(self._subject).where(*self._pair(subject_id, object_id)).limit(1)
        )
        return result.first() is not None

    def add(self, subject_id: int, object_id: int) -> Any:
        row = self.model(**{self._subject_attr: subject_id, self._object_attr: object_id})
        self.session.add(row)
        self.session.flush()
        return row

    def remove(self, subject_id: int, object_id: int) -> bool:
        result = self.session.execute(delete(self.model).where(*self._pair(subject_id, object_id)))
        return bool(result.rowcount)

    def objects_for(self, subject_id: int) -> list[int]:
        result = self.session.execute(
            select(self._object)
            .where(self._subject == subject_id)
            .order_by(self._created.desc(), self._object.desc())
        )
        return list(result.scalars())

    def subjects_for(self, object_id: int) -> list[int]:
        result = self.session.execute(
            select(self._subject)
            .where(self._object == object_id)
            .order_by(self._created.desc(), self._subject.desc())
        )
        return list(result.scalars())

    def remove_all_for_object(self, object_id: int) -> int:
        result = self.session.execute(delete(self.model).where(self._object == object_id))
        return int(result.rowcount or 0)


class SqlSocialRepository(SocialRepository):
    """Repository over a single SQLAlchemy session.

    One instance serves one request; the session's transaction is the unit
    of work behind :meth:`atomic`.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session
        self._relations = {kind: SqlRelationStore(session, kind) for kind in RelationKind}

    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except (IntegrityError, OperationalError) as err:
            self.session.rollback()
            if not is_write_conflict(err):
                raise
            logger.warning("Rolled back unit of work after write conflict: %s", err.orig)
            raise ConflictError("Concurrent update detected") from err
        except BaseException:
            self.session.rollback()
            raise

    def relation(self, kind: RelationKind) -> ToggleRelationStore:
        return self._relations[kind]

    def increment_counter(self, target: CounterTarget, entity_id: int) -> None:
        column = getattr(target.model, target.attribute)
        self.session.execute(
            update(target.model)
            .where(target.model.id == entity_id)
            .values({target.attribute: column + 1})
            .execution_options(synchronize_session="fetch")
        )

    def decrement_counter(self, target: CounterTarget, entity_id: int) -> None:
        column = getattr(target.model, target.attribute)
        self.session.execute(
            update(target.model)
            .where(target.model.id == entity_id)
            .values({target.attribute: case((column > 0, column - 1), else_=0)})
            .execution_options(synchronize_session="fetch")
        )

    def update(self, entity: EntityT, **values: Any) -> EntityT:
        for name, value in values.items():
            setattr(entity, name, value)
        self.session.flush()
        return entity

    # Users -------------------------------------------------------------

    def add_user(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        return user

    def get_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_users(self, user_ids: Iterable[int]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        result = self.session.execute(select(User).where(User.id.in_(ids)))
        return ordered_by_ids(result.scalars(), ids)

    def list_users(self) -> list[User]:
        result = self.session.execute(select(User).order_by(User.id))
        return list(result.scalars())

    # Posts and comments ------------------------------------------------

    def add_post(self, post: Post) -> Post:
        self.session.add(post)
        self.session.flush()
        return post

    def get_post(self, post_id: int, *, include_hidden: bool = False) -> Post | None:
        stmt = select(Post).where(Post.id == post_id)
        if not include_hidden:
            stmt = stmt.where(Post.is_visible.is_(True))
        return self.session.execute(stmt).scalars().first()

    def list_posts(
        self,
        *,
        offset: int,
        limit: int,
        author_id: int | None = None,
    ) -> list[Post]:
        stmt = select(Post).where(Post.is_visible.is_(True))
        if author_id is not None:
            stmt = stmt.where(Post.author_id == author_id)
        stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).offset(offset).limit(limit)
        return list(self.session.execute(stmt).scalars())

    def soft_delete_post(self, post_id: int) -> None:
        self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(is_visible=False)
            .execution_options(synchronize_session="fetch")
        )

    def add_comment(self, comment: PostComment) -> PostComment:
        self.session.add(comment)
        self.session.flush()
        return comment

    def get_comment(self, comment_id: int) -> PostComment | None:
        return self.session.get(PostComment, comment_id)

    def list_comments(self, post_id: int) -> list[PostComment]:
        result = self.session.execute(
            select(PostComment)
            .where(PostComment.post_id == post_id)
            .order_by(PostComment.created_at, PostComment.id)
        )
        return list(result.scalars())

    def delete_comment(self, comment_id: int) -> bool:
        result = self.session.execute(delete(PostComment).where(PostComment.id == comment_id))
        return bool(result.rowcount)

    # Challenges --------------------------------------------------------

    def add_challenge(self, challenge: Challenge) -> Challenge:
        self.session.add(challenge)
        self.session.flush()
        return challenge

    def get_challenge(self, challenge_id: int) -> Challenge | None:
        return self.session.get(Challenge, challenge_id)

    def list_challenges(self) -> list[Challenge]:
        result = self.session.execute(select(Challenge).order_by(Challenge.id))
        return list(result.scalars())

    def list_active_challenges(self, now: datetime) -> list[Challenge]:
        result = self.session.execute(
            select(Challenge)
            .where(
                Challenge.is_active.is_(True),
                Challenge.start_date <= now,
                Challenge.end_date >= now,
            )
            .order_by(Challenge.end_date, Challenge.id)
        )
        return list(result.scalars())

    def get_participant(self, challenge_id: int, user_id: int) -> ChallengeParticipant | None:
        return self.session.get(ChallengeParticipant, (challenge_id, user_id))

    def add_participant(self, participant: ChallengeParticipant) -> ChallengeParticipant:
        self.session.add(participant)
        self.session.flush()
        return participant

    def list_participants(self, challenge_id: int) -> list[ChallengeParticipant]:
        result = self.session.execute(
            select(ChallengeParticipant)
            .where(ChallengeParticipant.challenge_id == challenge_id)
            .order_by(ChallengeParticipant.join_date)
        )
        return list(result.scalars())

    def list_user_participations(self, user_id: int) -> list[ChallengeParticipant]:
        result = self.session.execute(
            select(ChallengeParticipant)
            .where(ChallengeParticipant.user_id == user_id)
            .order_by(ChallengeParticipant.join_date.desc())
        )
        return list(result.scalars())

    # Recipes -----------------------------------------------------------

    def add_recipe(self, recipe: CommunityRecipe) -> CommunityRecipe:
        self.session.add(recipe)
        self.session.flush()
        return recipe

    def get_recipe(self, recipe_id: int) -> CommunityRecipe | None:
        return self.session.get(CommunityRecipe, recipe_id)

    def list_public_recipes(self, *, offset: int, limit: int) -> list[CommunityRecipe]:
        result = self.session.execute(
            select(CommunityRecipe)
            .where(CommunityRecipe.is_public.is_(True))
            .order_by(CommunityRecipe.created_at.desc(), CommunityRecipe.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars())

    def list_user_recipes(self, author_id: int, *, public_only: bool) -> list[CommunityRecipe]:
        stmt = select(CommunityRecipe).where(CommunityRecipe.author_id == author_id)
        if public_only:
            stmt = stmt.where(CommunityRecipe.is_public.is_(True))
        stmt = stmt.order_by(CommunityRecipe.created_at.desc(), CommunityRecipe.id.desc())
        return list(self.session.execute(stmt).scalars())

    def get_recipes(self, recipe_ids: Iterable[int], *, public_only: bool) -> list[CommunityRecipe]:
        ids = list(recipe_ids)
        if not ids:
            return []
        stmt = select(CommunityRecipe).where(CommunityRecipe.id.in_(ids))
        if public_only:
            stmt = stmt.where(CommunityRecipe.is_public.is_(True))
        return ordered_by_ids(self.session.execute(stmt).scalars(), ids)

    def delete_recipe(self, recipe_id: int) -> None:
        self.session.execute(delete(RecipeRating).where(RecipeRating.recipe_id == recipe_id))
        self.session.execute(delete(RecipeFavorite).where(RecipeFavorite.recipe_id == recipe_id))
        self.session.execute(
            update(Post)
            .where(Post.linked_recipe_id == recipe_id)
            .values(linked_recipe_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(delete(CommunityRecipe).where(CommunityRecipe.id == recipe_id))

    def get_rating(self, recipe_id: int, user_id: int) -> RecipeRating | None:
        result = self.session.execute(
            select(RecipeRating).where(
                RecipeRating.recipe_id == recipe_id,
                RecipeRating.user_id == user_id,
            )
        )
        return result.scalars().first()

    def add_rating(self, rating: RecipeRating) -> RecipeRating:
        self.session.add(rating)
        self.session.flush()
        return rating

    def list_ratings(self, recipe_id: int) -> list[RecipeRating]:
        result = self.session.execute(
            select(RecipeRating)
            .where(RecipeRating.recipe_id == recipe_id)
            .order_by(RecipeRating.created_at.desc(), RecipeRating.id.desc())
        )
        return list(result.scalars())

"""In-process repository used by tests and database-less local runs.

Every entity type lives in its own arena keyed by a sequential id and guarded
by one lock. A store-wide re-entrant lock serializes units of work, and an
undo journal lets :meth:`InMemorySocialRepository.atomic` roll back whatever
a failed unit already applied.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Hashable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generic, TypeVar

from nutri_social.db.time import as_utc, utcnow
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

__all__ = ["InMemoryRelationStore", "InMemorySocialRepository"]

RowT = TypeVar("RowT")
EntityT = TypeVar("EntityT")


class _Table(Generic[RowT]):
    """Rows of one entity type keyed by id (or composite key)."""

    def __init__(self) -> None:
        self._rows: dict[Hashable, RowT] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def get(self, key: Hashable) -> RowT | None:
        with self._lock:
            return self._rows.get(key)

    def put(self, key: Hashable, row: RowT) -> None:
        with self._lock:
            self._rows[key] = row

    def pop(self, key: Hashable) -> RowT | None:
        with self._lock:
            return self._rows.pop(key, None)

    def items(self) -> list[tuple[Hashable, RowT]]:
        with self._lock:
            return list(self._rows.items())

    def values(self) -> list[RowT]:
        with self._lock:
            return list(self._rows.values())


def _newest_first(rows: Iterable[Any], attr: str = "created_at") -> list[Any]:
    return sorted(rows, key=lambda row: (as_utc(getattr(row, attr)), row.id), reverse=True)


class InMemoryRelationStore(ToggleRelationStore):
    """Toggle relation held as a table keyed by the ``(subject, object)`` tuple."""

    def __init__(
        self,
        repository: InMemorySocialRepository,
        kind: RelationKind,
        factory: Callable[[int, int], Any],
        created_attr: str = "created_at",
    ) -> None:
        self.kind = kind
        self._repository = repository
        self._factory = factory
        self._created_attr = created_attr
        self._table: _Table[Any] = _Table()

    def exists(self, subject_id: int, object_id: int) -> bool:
        return self._table.get((subject_id, object_id)) is not None

    def add(self, subject_id: int, object_id: int) -> Any:
        row = self._factory(subject_id, object_id)
        self._repository._insert(self._table, (subject_id, object_id), row)
        return row

    def remove(self, subject_id: int, object_id: int) -> bool:
        return self._repository._discard(self._table, (subject_id, object_id)) is not None

    def _sorted_keys(self) -> list[tuple[int, int]]:
        items = self._table.items()
        items.sort(key=lambda item: (getattr(item[1], self._created_attr), item[0]), reverse=True)
        return [key for key, _ in items]  # type: ignore[misc]

    def objects_for(self, subject_id: int) -> list[int]:
        return [obj for subj, obj in self._sorted_keys() if subj == subject_id]

    def subjects_for(self, object_id: int) -> list[int]:
        return [subj for subj, obj in self._sorted_keys() if obj == object_id]

    def remove_all_for_object(self, object_id: int) -> int:
        keys = [key for key in self._sorted_keys() if key[1] == object_id]
        for key in keys:
            self._repository._discard(self._table, key)
        return len(keys)


class InMemorySocialRepository(SocialRepository):
    """Process-local repository with the same semantics as the SQL one."""

    def __init__(self) -> None:
        self._unit_lock = threading.RLock()
        self._journal: list[Callable[[], None]] | None = None

        self._users: _Table[User] = _Table()
        self._posts: _Table[Post] = _Table()
        self._comments: _Table[PostComment] = _Table()
        self._challenges: _Table[Challenge] = _Table()
        self._participants: _Table[ChallengeParticipant] = _Table()
        self._recipes: _Table[CommunityRecipe] = _Table()
        self._ratings: _Table[RecipeRating] = _Table()

        self._relations: dict[RelationKind, InMemoryRelationStore] = {
            RelationKind.POST_LIKE: InMemoryRelationStore(
                self,
                RelationKind.POST_LIKE,
                lambda user_id, post_id: PostLike(
                    user_id=user_id, post_id=post_id, created_at=utcnow()
                ),
            ),
            RelationKind.COMMENT_LIKE: InMemoryRelationStore(
                self,
                RelationKind.COMMENT_LIKE,
                lambda user_id, comment_id: CommentLike(
                    user_id=user_id, comment_id=comment_id, created_at=utcnow()
                ),
            ),
            RelationKind.RECIPE_FAVORITE: InMemoryRelationStore(
                self,
                RelationKind.RECIPE_FAVORITE,
                lambda user_id, recipe_id: RecipeFavorite(
                    user_id=user_id, recipe_id=recipe_id, added_at=utcnow()
                ),
                created_attr="added_at",
            ),
            RelationKind.USER_FOLLOWER: InMemoryRelationStore(
                self,
                RelationKind.USER_FOLLOWER,
                lambda follower_id, following_id: UserFollower(
                    follower_id=follower_id, following_id=following_id, created_at=utcnow()
                ),
            ),
        }

    # Journal helpers ---------------------------------------------------

    def _record(self, undo: Callable[[], None]) -> None:
        if self._journal is not None:
            self._journal.append(undo)

    def _insert(self, table: _Table[Any], key: Hashable, row: Any) -> Any:
        with self._unit_lock:
            table.put(key, row)
            self._record(lambda: table.pop(key))
        return row

    def _discard(self, table: _Table[Any], key: Hashable) -> Any:
        with self._unit_lock:
            row = table.pop(key)
            if row is not None:
                self._record(lambda: table.put(key, row))
        return row

    def _insert_with_id(self, table: _Table[EntityT], row: EntityT) -> EntityT:
        if getattr(row, "id", None) is None:
            row.id = table.next_id()  # type: ignore[attr-defined]
        return self._insert(table, row.id, row)  # type: ignore[attr-defined]

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._unit_lock:
            if self._journal is not None:
                # Nested unit joins the enclosing one.
                yield
                return
            self._journal = []
            try:
                yield
            except BaseException:
                for undo in reversed(self._journal):
                    undo()
                raise
            finally:
                self._journal = None

    def relation(self, kind: RelationKind) -> ToggleRelationStore:
        return self._relations[kind]

    def _counter_owner(self, target: CounterTarget, entity_id: int) -> Any:
        table = self._comments if target is CounterTarget.COMMENT_LIKES else self._posts
        return table.get(entity_id)

    def increment_counter(self, target: CounterTarget, entity_id: int) -> None:
        with self._unit_lock:
            entity = self._counter_owner(target, entity_id)
            if entity is not None:
                current = getattr(entity, target.attribute) or 0
                self.update(entity, **{target.attribute: current + 1})

    def decrement_counter(self, target: CounterTarget, entity_id: int) -> None:
        with self._unit_lock:
            entity = self._counter_owner(target, entity_id)
            if entity is not None:
                current = getattr(entity, target.attribute) or 0
                self.update(entity, **{target.attribute: max(0, current - 1)})

    def update(self, entity: EntityT, **values: Any) -> EntityT:
        with self._unit_lock:
            previous = {name: getattr(entity, name) for name in values}
            for name, value in values.items():
                setattr(entity, name, value)

            def _restore() -> None:
                for name, value in previous.items():
                    setattr(entity, name, value)

            self._record(_restore)
        return entity

    # Users -------------------------------------------------------------

    def add_user(self, user: User) -> User:
        if user.created_at is None:
            user.created_at = utcnow()
        return self._insert_with_id(self._users, user)

    def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def get_users(self, user_ids: Iterable[int]) -> list[User]:
        ids = list(user_ids)
        return ordered_by_ids(self._users.values(), ids)

    def list_users(self) -> list[User]:
        return sorted(self._users.values(), key=lambda user: user.id)

    # Posts and comments ------------------------------------------------

    def add_post(self, post: Post) -> Post:
        return self._insert_with_id(self._posts, post)

    def get_post(self, post_id: int, *, include_hidden: bool = False) -> Post | None:
        post = self._posts.get(post_id)
        if post is None or (not include_hidden and not post.is_visible):
            return None
        return post

    def list_posts(
        self,
        *,
        offset: int,
        limit: int,
        author_id: int | None = None,
    ) -> list[Post]:
        posts = [
            post
            for post in self._posts.values()
            if post.is_visible and (author_id is None or post.author_id == author_id)
        ]
        return _newest_first(posts)[offset : offset + limit]

    def soft_delete_post(self, post_id: int) -> None:
        post = self._posts.get(post_id)
        if post is not None:
            self.update(post, is_visible=False)

    def add_comment(self, comment: PostComment) -> PostComment:
        return self._insert_with_id(self._comments, comment)

    def get_comment(self, comment_id: int) -> PostComment | None:
        return self._comments.get(comment_id)

    def list_comments(self, post_id: int) -> list[PostComment]:
        comments = [c for c in self._comments.values() if c.post_id == post_id]
        return list(reversed(_newest_first(comments)))

    def delete_comment(self, comment_id: int) -> bool:
        return self._discard(self._comments, comment_id) is not None

    # Challenges --------------------------------------------------------

    def add_challenge(self, challenge: Challenge) -> Challenge:
        return self._insert_with_id(self._challenges, challenge)

    def get_challenge(self, challenge_id: int) -> Challenge | None:
        return self._challenges.get(challenge_id)

    def list_challenges(self) -> list[Challenge]:
        return sorted(self._challenges.values(), key=lambda challenge: challenge.id)

    def list_active_challenges(self, now: datetime) -> list[Challenge]:
        now = as_utc(now)
        active = [
            challenge
            for challenge in self._challenges.values()
            if challenge.is_active
            and as_utc(challenge.start_date) <= now <= as_utc(challenge.end_date)
        ]
        return sorted(active, key=lambda challenge: (as_utc(challenge.end_date), challenge.id))

    def get_participant(self, challenge_id: int, user_id: int) -> ChallengeParticipant | None:
        return self._participants.get((challenge_id, user_id))

    def add_participant(self, participant: ChallengeParticipant) -> ChallengeParticipant:
        key = (participant.challenge_id, participant.user_id)
        return self._insert(self._participants, key, participant)

    def list_participants(self, challenge_id: int) -> list[ChallengeParticipant]:
        rows = [p for p in self._participants.values() if p.challenge_id == challenge_id]
        return sorted(rows, key=lambda p: as_utc(p.join_date))

    def list_user_participations(self, user_id: int) -> list[ChallengeParticipant]:
        rows = [p for p in self._participants.values() if p.user_id == user_id]
        return sorted(rows, key=lambda p: as_utc(p.join_date), reverse=True)

    # Recipes -----------------------------------------------------------

    def add_recipe(self, recipe: CommunityRecipe) -> CommunityRecipe:
        return self._insert_with_id(self._recipes, recipe)

    def get_recipe(self, recipe_id: int) -> CommunityRecipe | None:
        return self._recipes.get(recipe_id)

    def list_public_recipes(self, *, offset: int, limit: int) -> list[CommunityRecipe]:
        recipes = [r for r in self._recipes.values() if r.is_public]
        return _newest_first(recipes)[offset : offset + limit]

    def list_user_recipes(self, author_id: int, *, public_only: bool) -> list[CommunityRecipe]:
        recipes = [
            r
            for r in self._recipes.values()
            if r.author_id == author_id and (r.is_public or not public_only)
        ]
        return _newest_first(recipes)

    def get_recipes(self, recipe_ids: Iterable[int], *, public_only: bool) -> list[CommunityRecipe]:
        ids = list(recipe_ids)
        recipes = [r for r in self._recipes.values() if r.is_public or not public_only]
        return ordered_by_ids(recipes, ids)

    def delete_recipe(self, recipe_id: int) -> None:
        with self._unit_lock:
            for rating in self._ratings.values():
                if rating.recipe_id == recipe_id:
                    self._discard(self._ratings, rating.id)
            self._relations[RelationKind.RECIPE_FAVORITE].remove_all_for_object(recipe_id)
            for post in self._posts.values():
                if post.linked_recipe_id == recipe_id:
                    self.update(post, linked_recipe_id=None)
            self._discard(self._recipes, recipe_id)

    def get_rating(self, recipe_id: int, user_id: int) -> RecipeRating | None:
        for rating in self._ratings.values():
            if rating.recipe_id == recipe_id and rating.user_id == user_id:
                return rating
        return None

    def add_rating(self, rating: RecipeRating) -> RecipeRating:
        return self._insert_with_id(self._ratings, rating)

    def list_ratings(self, recipe_id: int) -> list[RecipeRating]:
        return _newest_first(r for r in self._ratings.values() if r.recipe_id == recipe_id)

"""Tests for the interaction service against both repository implementations."""

from __future__ import annotations

from contextlib import contextmanager

import pytest
from pydantic.alias_generators import to_camel

from nutri_social.core.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
)
from nutri_social.db.time import utcnow
from nutri_social.models import Post, User
from nutri_social.repositories.base import CounterTarget, RelationKind
from nutri_social.repositories.memory import InMemorySocialRepository
from nutri_social.schemas.challenge import ChallengeCreate, ChallengeUpdate
from nutri_social.schemas.post import PostCreate, PostUpdate
from nutri_social.schemas.recipe import RecipeCreate, RecipeUpdate
from nutri_social.services import InteractionService


def _recipe_payload(**overrides) -> RecipeCreate:
    values = {
        "title": "Overnight oats",
        "ingredients": ["oats", "milk", "chia seeds"],
        "instructions": ["Mix everything", "Refrigerate overnight"],
        "prep_time": 5,
        "servings": 2,
        "macros": {"calories": 320, "protein": 12, "carbs": 48, "fats": 9},
        "tags": ["breakfast"],
    }
    values.update(overrides)
    return RecipeCreate(**values)


@pytest.fixture()
def post(interactions, alice):
    return interactions.create_post(alice.id, PostCreate(content="Lunch: quinoa bowl", type="meal"))


@pytest.fixture()
def recipe(interactions, alice):
    return interactions.create_recipe(alice.id, _recipe_payload())


def test_toggle_post_like_alternates_and_restores_count(interactions, repository, post, bob) -> None:
    before = repository.get_post(post.id).likes_count

    assert interactions.toggle_post_like(post.id, bob.id) is True
    assert repository.get_post(post.id).likes_count == before + 1

    assert interactions.toggle_post_like(post.id, bob.id) is False
    assert repository.get_post(post.id).likes_count == before
    assert not repository.relation(RelationKind.POST_LIKE).exists(bob.id, post.id)


def test_likes_count_matches_relation_rows(interactions, repository, post, alice, bob, carol) -> None:
    for user in (alice, bob, carol):
        interactions.toggle_post_like(post.id, user.id)
    interactions.toggle_post_like(post.id, bob.id)

    likers = repository.relation(RelationKind.POST_LIKE).subjects_for(post.id)
    assert sorted(likers) == sorted([alice.id, carol.id])
    assert repository.get_post(post.id).likes_count == 2


def test_set_post_like_is_idempotent(interactions, repository, post, bob) -> None:
    assert interactions.set_post_like(post.id, bob.id, True) is True
    assert interactions.set_post_like(post.id, bob.id, True) is True
    assert repository.get_post(post.id).likes_count == 1

    assert interactions.set_post_like(post.id, bob.id, False) is False
    assert interactions.set_post_like(post.id, bob.id, False) is False
    assert repository.get_post(post.id).likes_count == 0


def test_counter_never_goes_negative(interactions, repository, post) -> None:
    with repository.atomic():
        repository.decrement_counter(CounterTarget.POST_LIKES, post.id)
        repository.decrement_counter(CounterTarget.POST_COMMENTS, post.id)

    stored = repository.get_post(post.id)
    assert stored.likes_count == 0
    assert stored.comments_count == 0


def test_like_missing_post_is_not_found(interactions, bob) -> None:
    with pytest.raises(NotFoundError):
        interactions.toggle_post_like(404, bob.id)


def test_hidden_post_cannot_be_liked(interactions, post, alice, bob) -> None:
    interactions.delete_post(post.id, alice.id)

    with pytest.raises(NotFoundError):
        interactions.toggle_post_like(post.id, bob.id)


def test_toggle_comment_like_updates_comment_counter(interactions, repository, post, bob) -> None:
    comment = interactions.add_comment(post.id, bob.id, "Looks great")

    assert interactions.toggle_comment_like(comment.id, bob.id) is True
    assert repository.get_comment(comment.id).likes_count == 1
    assert interactions.toggle_comment_like(comment.id, bob.id) is False
    assert repository.get_comment(comment.id).likes_count == 0


def test_self_follow_is_rejected(interactions, repository, alice) -> None:
    with pytest.raises(InvalidOperationError):
        interactions.toggle_follow(alice.id, alice.id)
    with pytest.raises(InvalidOperationError):
        interactions.follow(alice.id, alice.id)

    assert not repository.relation(RelationKind.USER_FOLLOWER).exists(alice.id, alice.id)


def test_follow_unknown_user_is_not_found(interactions, alice) -> None:
    with pytest.raises(NotFoundError):
        interactions.toggle_follow(alice.id, 9999)


def test_follow_and_unfollow_are_idempotent(interactions, repository, alice, bob) -> None:
    assert interactions.follow(alice.id, bob.id) is True
    assert interactions.follow(alice.id, bob.id) is True
    assert repository.relation(RelationKind.USER_FOLLOWER).subjects_for(bob.id) == [alice.id]

    assert interactions.unfollow(alice.id, bob.id) is False
    assert interactions.unfollow(alice.id, bob.id) is False
    assert repository.relation(RelationKind.USER_FOLLOWER).subjects_for(bob.id) == []


def test_toggle_recipe_favorite(interactions, repository, recipe, bob) -> None:
    assert interactions.toggle_recipe_favorite(recipe.id, bob.id) is True
    assert repository.relation(RelationKind.RECIPE_FAVORITE).objects_for(bob.id) == [recipe.id]
    assert interactions.toggle_recipe_favorite(recipe.id, bob.id) is False
    assert repository.relation(RelationKind.RECIPE_FAVORITE).objects_for(bob.id) == []


def test_private_recipe_hidden_from_other_users(interactions, alice, bob) -> None:
    private = interactions.create_recipe(alice.id, _recipe_payload(is_public=False))

    with pytest.raises(NotFoundError):
        interactions.toggle_recipe_favorite(private.id, bob.id)
    assert interactions.toggle_recipe_favorite(private.id, alice.id) is True


def test_rating_upsert_keeps_one_row(interactions, repository, recipe, bob) -> None:
    first = interactions.rate_recipe(recipe.id, bob.id, 3, "A bit bland")
    second = interactions.rate_recipe(recipe.id, bob.id, 5, "Better with honey")

    ratings = repository.list_ratings(recipe.id)
    assert len(ratings) == 1
    assert ratings[0].rating == 5
    assert ratings[0].comment == "Better with honey"
    assert first.id == second.id


@pytest.mark.parametrize("value", [0, 6, -1, 2.5, True])
def test_rating_out_of_range_is_invalid(interactions, repository, recipe, bob, value) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        interactions.rate_recipe(recipe.id, bob.id, value)

    assert excinfo.value.field == "rating"
    assert repository.list_ratings(recipe.id) == []


def test_comment_delete_cascade(interactions, repository, post, alice, bob, carol) -> None:
    comments = [
        interactions.add_comment(post.id, user.id, f"comment by {user.username}")
        for user in (alice, bob, carol)
    ]
    assert repository.get_post(post.id).comments_count == 3
    target = comments[1]
    interactions.toggle_comment_like(target.id, alice.id)
    interactions.toggle_comment_like(target.id, carol.id)

    interactions.delete_comment(target.id, bob.id)

    assert repository.get_post(post.id).comments_count == 2
    assert repository.get_comment(target.id) is None
    assert repository.relation(RelationKind.COMMENT_LIKE).subjects_for(target.id) == []


def test_post_author_may_delete_any_comment(interactions, repository, post, alice, bob, carol) -> None:
    comment = interactions.add_comment(post.id, bob.id, "Nice")

    with pytest.raises(PermissionDeniedError):
        interactions.delete_comment(comment.id, carol.id)
    interactions.delete_comment(comment.id, alice.id)

    assert repository.get_post(post.id).comments_count == 0


def test_blank_comment_is_invalid(interactions, post, bob) -> None:
    with pytest.raises(InvalidInputError):
        interactions.add_comment(post.id, bob.id, "   ")


def test_update_comment_only_by_author(interactions, post, alice, bob) -> None:
    comment = interactions.add_comment(post.id, bob.id, "Frist")

    with pytest.raises(PermissionDeniedError):
        interactions.update_comment(comment.id, alice.id, "First")
    updated = interactions.update_comment(comment.id, bob.id, "First")
    assert updated.content == "First"


def test_update_and_delete_post(interactions, repository, post, alice, bob) -> None:
    with pytest.raises(PermissionDeniedError):
        interactions.update_post(post.id, bob.id, PostUpdate(content="hijacked"))

    updated = interactions.update_post(post.id, alice.id, PostUpdate(content="Dinner instead"))
    assert updated.content == "Dinner instead"
    assert updated.type == "meal"

    interactions.delete_post(post.id, alice.id)
    assert repository.get_post(post.id) is None
    assert repository.get_post(post.id, include_hidden=True).is_visible is False


def test_post_with_unknown_link_is_invalid(interactions, alice) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        interactions.create_post(
            alice.id, PostCreate(content="Joined!", type="challenge", linked_challenge_id=77)
        )
    assert excinfo.value.field == "linkedChallengeId"


def test_join_challenge_is_idempotent(interactions, repository, make_challenge, bob) -> None:
    challenge = make_challenge()

    participant, created = interactions.join_challenge(challenge.id, bob.id)
    assert created is True
    assert participant.progress == 0
    assert participant.completed is False

    again, created_again = interactions.join_challenge(challenge.id, bob.id)
    assert created_again is False
    assert again.join_date == participant.join_date
    assert len(repository.list_participants(challenge.id)) == 1


def test_progress_reaching_goal_completes(interactions, make_challenge, bob) -> None:
    challenge = make_challenge(goal_value=7)
    interactions.join_challenge(challenge.id, bob.id)

    partial = interactions.update_progress(challenge.id, bob.id, 3)
    assert partial.completed is False
    assert partial.completed_date is None

    done = interactions.update_progress(challenge.id, bob.id, 7)
    assert done.progress == 7
    assert done.completed is True
    assert done.completed_date is not None


def test_progress_after_completion_keeps_first_completion_date(interactions, make_challenge, bob) -> None:
    challenge = make_challenge(goal_value=2)
    interactions.join_challenge(challenge.id, bob.id)
    completed_at = interactions.update_progress(challenge.id, bob.id, 2).completed_date

    later = interactions.update_progress(challenge.id, bob.id, 5)
    assert later.completed_date == completed_at

    with pytest.raises(InvalidOperationError):
        interactions.update_progress(challenge.id, bob.id, 1)


def test_progress_requires_participation(interactions, make_challenge, bob) -> None:
    challenge = make_challenge()

    with pytest.raises(NotFoundError):
        interactions.update_progress(challenge.id, bob.id, 1)
    with pytest.raises(InvalidInputError):
        interactions.update_progress(challenge.id, bob.id, -1)


def test_complete_challenge_forces_goal(interactions, make_challenge, bob) -> None:
    challenge = make_challenge(goal_value=30)
    interactions.join_challenge(challenge.id, bob.id)

    participant = interactions.complete_challenge(challenge.id, bob.id)

    assert participant.progress == 30
    assert participant.completed is True
    assert participant.completed_date is not None


def test_create_challenge_validates_window(interactions) -> None:
    payload = ChallengeCreate(
        title="Backwards",
        start_date="2026-03-10T00:00:00Z",
        end_date="2026-03-01T00:00:00Z",
        goal="Walk",
        goal_type="steps",
        goal_value=10000,
    )
    with pytest.raises(InvalidInputError) as excinfo:
        interactions.create_challenge(payload)
    assert excinfo.value.field == "endDate"


def test_update_challenge(interactions, make_challenge) -> None:
    challenge = make_challenge()

    updated = interactions.update_challenge(
        challenge.id, ChallengeUpdate(title="Hydration fortnight", goal_value=14)
    )

    assert updated.title == "Hydration fortnight"
    assert updated.goal_value == 14


def test_update_recipe_only_by_author(interactions, recipe, alice, bob) -> None:
    with pytest.raises(PermissionDeniedError):
        interactions.update_recipe(recipe.id, bob.id, RecipeUpdate(title="Mine now"))

    updated = interactions.update_recipe(
        recipe.id, alice.id, RecipeUpdate(servings=4, macros={"calories": 300})
    )
    assert updated.servings == 4
    assert updated.macros["calories"] == 300


def test_delete_recipe_cascades(interactions, repository, recipe, alice, bob) -> None:
    interactions.rate_recipe(recipe.id, bob.id, 4)
    interactions.toggle_recipe_favorite(recipe.id, bob.id)
    linked = interactions.create_post(
        alice.id, PostCreate(content="New recipe!", type="recipe", linked_recipe_id=recipe.id)
    )

    with pytest.raises(PermissionDeniedError):
        interactions.delete_recipe(recipe.id, bob.id)
    interactions.delete_recipe(recipe.id, alice.id)

    assert repository.get_recipe(recipe.id) is None
    assert repository.list_ratings(recipe.id) == []
    assert repository.relation(RelationKind.RECIPE_FAVORITE).objects_for(bob.id) == []
    assert repository.get_post(linked.id).linked_recipe_id is None


def test_failed_unit_rolls_back_relation_and_counter(repository, post, bob) -> None:
    with pytest.raises(RuntimeError):
        with repository.atomic():
            repository.relation(RelationKind.POST_LIKE).add(bob.id, post.id)
            repository.increment_counter(CounterTarget.POST_LIKES, post.id)
            raise RuntimeError("storage went away")

    assert not repository.relation(RelationKind.POST_LIKE).exists(bob.id, post.id)
    assert repository.get_post(post.id).likes_count == 0


class FlakyRepository(InMemorySocialRepository):
    """Fails the first ``failures`` units with a write conflict after applying them."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    @contextmanager
    def atomic(self):
        self.attempts += 1
        with super().atomic():
            yield
            if self.failures:
                self.failures -= 1
                raise ConflictError("simulated concurrent update")


def _flaky_setup(failures: int):
    repository = FlakyRepository(failures=0)
    with repository.atomic():
        user = repository.add_user(User(username="racer"))
        post = repository.add_post(
            Post(
                author_id=user.id,
                content="race",
                type="general",
                likes_count=0,
                comments_count=0,
                is_visible=True,
                created_at=utcnow(),
            )
        )
    repository.failures = failures
    return repository, user, post


def test_conflict_is_retried_until_success() -> None:
    repository, user, post = _flaky_setup(failures=2)
    service = InteractionService(repository, max_attempts=3)

    assert service.toggle_post_like(post.id, user.id) is True

    assert repository.attempts == 4  # setup unit plus three attempts
    assert post.likes_count == 1
    assert repository.relation(RelationKind.POST_LIKE).subjects_for(post.id) == [user.id]


def test_conflict_surfaces_after_retries_without_partial_writes() -> None:
    repository, user, post = _flaky_setup(failures=5)
    service = InteractionService(repository, max_attempts=2)

    with pytest.raises(ConflictError):
        service.toggle_post_like(post.id, user.id)

    assert post.likes_count == 0
    assert not repository.relation(RelationKind.POST_LIKE).exists(user.id, post.id)


class _CompetingRemoval:
    """Relation store whose pair is removed by another unit right after ``exists`` sees it."""

    def __init__(self, repository, kind, counter) -> None:
        self._repository = repository
        self._inner = repository.relation(kind)
        self._counter = counter
        self.armed = True

    def exists(self, subject_id, object_id):
        present = self._inner.exists(subject_id, object_id)
        if present and self.armed:
            self.armed = False
            self._inner.remove(subject_id, object_id)
            self._repository.decrement_counter(self._counter, object_id)
        return present

    def __getattr__(self, name):
        return getattr(self._inner, name)


def test_concurrent_unlike_does_not_double_decrement(
    interactions, repository, monkeypatch, post, bob, carol
) -> None:
    interactions.toggle_post_like(post.id, bob.id)
    interactions.toggle_post_like(post.id, carol.id)
    racing = _CompetingRemoval(repository, RelationKind.POST_LIKE, CounterTarget.POST_LIKES)
    relation = repository.relation
    monkeypatch.setattr(
        repository,
        "relation",
        lambda kind: racing if kind is RelationKind.POST_LIKE else relation(kind),
    )

    assert interactions.toggle_post_like(post.id, bob.id) is False

    monkeypatch.undo()
    likers = repository.relation(RelationKind.POST_LIKE).subjects_for(post.id)
    assert likers == [carol.id]
    assert repository.get_post(post.id).likes_count == len(likers)


def test_concurrent_comment_delete_does_not_double_decrement(
    interactions, repository, monkeypatch, post, alice, bob
) -> None:
    interactions.add_comment(post.id, alice.id, "Keep me")
    doomed = interactions.add_comment(post.id, bob.id, "Delete me")
    get_comment = repository.get_comment

    def get_comment_then_lose_race(comment_id):
        comment = get_comment(comment_id)
        if comment is not None and comment_id == doomed.id:
            repository.delete_comment(comment_id)
            repository.decrement_counter(CounterTarget.POST_COMMENTS, post.id)
        return comment

    monkeypatch.setattr(repository, "get_comment", get_comment_then_lose_race)

    interactions.delete_comment(doomed.id, bob.id)

    monkeypatch.undo()
    assert [c.content for c in repository.list_comments(post.id)] == ["Keep me"]
    assert repository.get_post(post.id).comments_count == 1


@pytest.mark.parametrize("field", ["title", "goal", "goal_type", "goal_value", "is_active", "end_date"])
def test_update_challenge_rejects_null_required_fields(
    interactions, repository, make_challenge, field
) -> None:
    challenge = make_challenge(title="Veggie week")

    with pytest.raises(InvalidInputError) as excinfo:
        interactions.update_challenge(challenge.id, ChallengeUpdate(**{field: None}))

    assert excinfo.value.field == to_camel(field)
    stored = repository.get_challenge(challenge.id)
    assert stored.title == "Veggie week"
    assert getattr(stored, field) is not None


def test_update_challenge_allows_null_rewards(interactions, make_challenge) -> None:
    challenge = make_challenge(rewards={"badge": "hydrated"})

    updated = interactions.update_challenge(challenge.id, ChallengeUpdate(rewards=None))

    assert updated.rewards is None


@pytest.mark.parametrize("field", ["title", "ingredients", "instructions", "servings", "is_public"])
def test_update_recipe_rejects_null_required_fields(
    interactions, repository, recipe, alice, field
) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        interactions.update_recipe(recipe.id, alice.id, RecipeUpdate(**{field: None}))

    assert excinfo.value.field == to_camel(field)
    assert getattr(repository.get_recipe(recipe.id), field) is not None


def test_update_recipe_clears_nullable_fields(interactions, recipe, alice) -> None:
    updated = interactions.update_recipe(
        recipe.id, alice.id, RecipeUpdate(macros=None, tags=None, description=None)
    )

    assert updated.macros is None
    assert updated.tags is None


def test_lowering_goal_completes_participants_already_there(
    interactions, repository, make_challenge, alice, bob
) -> None:
    challenge = make_challenge(goal_value=5)
    interactions.join_challenge(challenge.id, alice.id)
    interactions.join_challenge(challenge.id, bob.id)
    interactions.update_progress(challenge.id, bob.id, 3)
    interactions.update_progress(challenge.id, alice.id, 1)

    interactions.update_challenge(challenge.id, ChallengeUpdate(goal_value=2))

    bob_row = repository.get_participant(challenge.id, bob.id)
    alice_row = repository.get_participant(challenge.id, alice.id)
    assert bob_row.completed is True
    assert bob_row.completed_date is not None
    assert bob_row.progress == 3
    assert alice_row.completed is False
    assert alice_row.completed_date is None


def test_raising_goal_above_completed_progress_is_rejected(
    interactions, repository, make_challenge, alice, bob
) -> None:
    challenge = make_challenge(goal_value=3)
    interactions.join_challenge(challenge.id, alice.id)
    interactions.join_challenge(challenge.id, bob.id)
    interactions.update_progress(challenge.id, bob.id, 3)
    interactions.update_progress(challenge.id, alice.id, 2)

    with pytest.raises(InvalidOperationError):
        interactions.update_challenge(challenge.id, ChallengeUpdate(title="Harder", goal_value=10))

    stored = repository.get_challenge(challenge.id)
    assert stored.goal_value == 3
    assert stored.title != "Harder"
    assert repository.get_participant(challenge.id, bob.id).completed is True


def test_raising_goal_without_completions_keeps_progress(
    interactions, repository, make_challenge, bob
) -> None:
    challenge = make_challenge(goal_value=3)
    interactions.join_challenge(challenge.id, bob.id)
    interactions.update_progress(challenge.id, bob.id, 2)

    interactions.update_challenge(challenge.id, ChallengeUpdate(goal_value=10))

    participant = repository.get_participant(challenge.id, bob.id)
    assert participant.progress == 2
    assert participant.completed is False

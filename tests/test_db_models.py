"""Unit tests for the ORM models defined in nutri_social.models.

These tests verify mapping correctness: table names, composite primary keys
on toggle relations, and the database constraints that back the service
rules (no self-follow, one rating per user and recipe).
"""

import pytest
from sqlalchemy.exc import IntegrityError

from nutri_social.models import (
    CommentLike,
    CommunityRecipe,
    Post,
    PostLike,
    RecipeFavorite,
    RecipeRating,
    User,
    UserFollower,
)
from nutri_social.models.challenge import ChallengeParticipant


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert Post.__tablename__ == "social_posts"
    assert PostLike.__tablename__ == "post_likes"
    assert UserFollower.__tablename__ == "user_followers"
    assert CommunityRecipe.__tablename__ == "community_recipes"


@pytest.mark.parametrize(
    ("model", "columns"),
    [
        (PostLike, {"post_id", "user_id"}),
        (CommentLike, {"comment_id", "user_id"}),
        (UserFollower, {"follower_id", "following_id"}),
        (RecipeFavorite, {"recipe_id", "user_id"}),
        (ChallengeParticipant, {"challenge_id", "user_id"}),
    ],
)
def test_toggle_relations_use_composite_primary_keys(model, columns):
    assert {c.name for c in model.__table__.primary_key} == columns


def test_display_name_falls_back_to_username():
    assert User(username="kim", first_name="Kim", last_name="Lee").display_name == "Kim Lee"
    assert User(username="kim").display_name == "kim"


def _users(db_session):
    first, second = User(username="first"), User(username="second")
    db_session.add_all([first, second])
    db_session.flush()
    return first, second


def test_self_follow_violates_check_constraint(db_session):
    user, _ = _users(db_session)
    db_session.add(UserFollower(follower_id=user.id, following_id=user.id))

    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_duplicate_rating_violates_unique_constraint(db_session):
    author, rater = _users(db_session)
    recipe = CommunityRecipe(author_id=author.id, title="Dal", ingredients=["lentils"], instructions=["Boil"])
    db_session.add(recipe)
    db_session.flush()
    db_session.add(RecipeRating(recipe_id=recipe.id, user_id=rater.id, rating=4))
    db_session.flush()

    db_session.add(RecipeRating(recipe_id=recipe.id, user_id=rater.id, rating=5))
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_duplicate_like_violates_primary_key(db_session):
    author, liker = _users(db_session)
    post = Post(author_id=author.id, content="hello")
    db_session.add(post)
    db_session.flush()
    db_session.add(PostLike(post_id=post.id, user_id=liker.id))
    db_session.flush()

    db_session.add(PostLike(post_id=post.id, user_id=liker.id))
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_init_db_creates_social_tables():
    from sqlalchemy import inspect

    from nutri_social.db.session import engine
    from nutri_social.init_db import init_db

    init_db()

    tables = set(inspect(engine).get_table_names())
    assert {"social_posts", "post_likes", "user_followers", "recipe_ratings"} <= tables

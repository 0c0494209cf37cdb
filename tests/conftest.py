# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import timedelta
from itertools import count

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-nutri-social")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from nutri_social.api.v1.dependencies import get_repository
from nutri_social.core.security import create_access_token
from nutri_social.db.session import Base
from nutri_social.db.time import utcnow
from nutri_social.main import app as fastapi_app
from nutri_social.models import Challenge, User
from nutri_social.repositories.base import SocialRepository
from nutri_social.repositories.memory import InMemorySocialRepository
from nutri_social.repositories.sql import SqlSocialRepository
from nutri_social.services import InteractionService, ListingService

TEST_DB_URL = "sqlite://"

_USERNAME_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT handling.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits only release savepoints inside one outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture(params=["sql", "memory"])
def repository(request: pytest.FixtureRequest) -> SocialRepository:
    """Run the test once per repository implementation."""
    if request.param == "sql":
        return SqlSocialRepository(request.getfixturevalue("db_session"))
    return InMemorySocialRepository()


@pytest.fixture()
def interactions(repository: SocialRepository) -> InteractionService:
    return InteractionService(repository)


@pytest.fixture()
def listings(repository: SocialRepository) -> ListingService:
    return ListingService(repository)


@pytest.fixture()
def make_user(repository: SocialRepository) -> Callable[..., User]:
    def _make_user(username: str | None = None, **fields: object) -> User:
        name = username or f"user{next(_USERNAME_COUNTER)}"
        with repository.atomic():
            user = repository.add_user(User(username=name, email=f"{name}@example.com", **fields))
        return user

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice", first_name="Alice", last_name="Moreau")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol", first_name="Carol")


@pytest.fixture()
def make_challenge(repository: SocialRepository) -> Callable[..., Challenge]:
    def _make_challenge(**fields: object) -> Challenge:
        now = utcnow()
        values: dict[str, object] = {
            "title": "Hydration week",
            "description": "Drink 2 litres a day",
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=6),
            "goal": "Drink 2000 ml of water every day",
            "goal_type": "days",
            "goal_value": 7,
            "is_active": True,
            "created_at": now,
        }
        values.update(fields)
        with repository.atomic():
            challenge = repository.add_challenge(Challenge(**values))
        return challenge

    return _make_challenge


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, repository: SocialRepository) -> Iterator[TestClient]:
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_repository, None)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return auth_headers(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return auth_headers(bob)


@pytest.fixture()
def carol_headers(carol: User) -> dict[str, str]:
    return auth_headers(carol)

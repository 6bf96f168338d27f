# File: tests/conftest.py
"""Pytest configuration and fixtures."""

import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="bank-tests-")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", f"sqlite:///{_db_dir}/app.db")

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from api.dependencies import get_store
from db import configure_sqlite
import random_data
import schemas
from services.store import Store
from services.token_maker import JWTMaker
from services.token_service import TokenService, hash_password

TEST_SECRET = "a" * 32
PASSWORD = "secret123"

random_data.init_random(1234)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Fresh file-backed SQLite database for each test."""
    engine = configure_sqlite(create_engine(
        f"sqlite:///{tmp_path}/test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
    ))
    schemas.Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        schemas.Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def store(session_factory):
    return Store(session_factory)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Session for inspecting the database directly."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def token_maker():
    return JWTMaker(TEST_SECRET)


@pytest.fixture
def token_service(token_maker, store):
    return TokenService(
        token_maker,
        store,
        access_token_duration=timedelta(minutes=15),
        refresh_token_duration=timedelta(hours=24),
    )


@pytest.fixture(scope="function")
def client(store, token_maker):
    """Create a test client with store and token maker overrides."""
    from api.dependencies import get_token_maker

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_token_maker] = lambda: token_maker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(store):
    """Factory creating a user with a known password."""
    hashed = hash_password(PASSWORD)

    def _create_user(username=None):
        username = username or random_data.random_owner()
        with store.queries() as q:
            return q.create_user(
                username=username,
                hashed_password=hashed,
                full_name=username.title(),
                email=f"{username}@email.com",
            )

    return _create_user


@pytest.fixture
def create_account(store, create_user):
    """Factory creating an account, and its owner when none is given."""

    def _create_account(owner=None, balance=None, currency="USD"):
        if owner is None:
            owner = create_user().username
        if balance is None:
            balance = random_data.random_money()
        with store.queries() as q:
            return q.create_account(owner=owner, balance=balance, currency=currency)

    return _create_account


@pytest.fixture
def sample_accounts(create_user, create_account):
    """Three USD accounts owned by user1, user2 and user3."""
    accounts = []
    for username, balance in (("user1", 5000), ("user2", 3000), ("user3", 1000)):
        create_user(username)
        accounts.append(create_account(owner=username, balance=balance, currency="USD"))
    return accounts


@pytest.fixture
def auth_headers(token_maker):
    """Build a bearer header for a username."""

    def _auth_headers(username, duration=timedelta(minutes=15)):
        token, _ = token_maker.create_token(username, duration)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers

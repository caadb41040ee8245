"""Pytest configuration shared across the suite."""

import os

# Must be set before app.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_token_service
from app.core.database import Base, get_db
from app.main import app
from app.models.token import SCOPE_AUTHENTICATION
from app.services.token_service import TokenService
from app.services.user_service import user_service


class FakeClock:
    """Controllable replacement for utc_now()."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture()
def engine():
    # One shared in-memory database for the test thread and the app's worker threads
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def tokens(clock):
    return TokenService(clock=clock)


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make_user(name: str = "Ada", email: str | None = None, password: str = "pa55word!"):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        return user_service.register(db, name, email, password)

    return _make_user


@pytest.fixture()
def auth_headers(db, tokens):
    def _auth_headers(user, ttl: timedelta = timedelta(hours=1)):
        issued = tokens.issue(db, user.id, ttl, SCOPE_AUTHENTICATION)
        return {"Authorization": f"Bearer {issued.plaintext}"}

    return _auth_headers


@pytest.fixture()
def client(session_factory, tokens):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            get_db: override_get_db,
            get_token_service: lambda: tokens,
        }
    )

    # Not used as a context manager: the lifespan scheduler stays off in tests
    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()

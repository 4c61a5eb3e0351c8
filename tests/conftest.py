"""Configuration for pytest."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from blocklog.app import create_app
from blocklog.blocks import UserContext, create_block
from blocklog.database import db as _db
from blocklog.models import Block, User
from sqlalchemy.orm import scoped_session, sessionmaker

from .factories import FORM_DATA, make_fields

if TYPE_CHECKING:
    from typing import Generator

    from blocklog.database import DB
    from flask import Flask
    from flask.testing import FlaskClient


@pytest.fixture(scope="session", autouse=True)
def _set_env() -> None:
    """Point the app at an in-memory database and skip Firebase."""
    os.environ["FLASK_SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
    # Use "sqlite:///testing.db" to inspect the test database
    os.environ["FLASK_FIREBASE_ENABLED"] = "false"
    os.environ["FLASK_SECRET_KEY"] = "testing-secret-key"


@pytest.fixture(scope="session")
def app() -> Flask:
    """Create and configure a new app instance."""
    app = create_app()
    app.config.update({"TESTING": True})
    return app


@pytest.fixture(scope="session")
def db(app: Flask) -> Generator[DB, None, None]:
    """Provide the database for tests."""
    with app.app_context():
        yield _db


@pytest.fixture()
def session(db: DB) -> Generator[scoped_session, None, None]:
    """Create a new database session for a test.

    Everything the test commits is rolled back at the end.
    """
    if not db.engine:
        pytest.fail("No database engine.")
    connection = db.engine.connect()
    transaction = connection.begin()

    session_factory = sessionmaker(bind=connection, expire_on_commit=False)
    session = scoped_session(session_factory)
    saved_session = db.session
    db.session = session  # type: ignore[assignment]

    yield session

    session.remove()
    transaction.rollback()
    connection.close()
    db.session = saved_session


@pytest.fixture()
def client(app: Flask, session: scoped_session) -> FlaskClient:
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture()
def user(session: scoped_session) -> User:
    """Create a regular user for testing."""
    user = User(email="driver@example.com", name="Test Driver")
    session.add(user)
    session.commit()
    return user


@pytest.fixture()
def other_user(session: scoped_session) -> User:
    """Create a second user, who must never see the first user's blocks."""
    user = User(email="other@example.com", name="Other Driver")
    session.add(user)
    session.commit()
    return user


@pytest.fixture()
def ctx(user: User) -> UserContext:
    """Store access context for the regular user."""
    return UserContext(user.id)


@pytest.fixture()
def logged_client(client: FlaskClient, user: User) -> FlaskClient:
    """Test client with the regular user logged in."""
    with client.session_transaction() as sess:
        sess["user_id"] = user.id
    return client


@pytest.fixture()
def block(ctx: UserContext, session: scoped_session) -> Block:
    """A block owned by the regular user."""
    return create_block(ctx, make_fields(), session)


@pytest.fixture()
def form_data() -> dict[str, str]:
    """Fresh copy of a valid form submission."""
    return FORM_DATA.copy()

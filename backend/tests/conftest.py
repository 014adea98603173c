"""Pytest fixtures for an isolated application per test.

Each test gets its own Flask app built from :class:`TestingConfig`: a fresh
in-memory SQLite database and fresh in-memory session, revocation and IP
reputation stores, so nothing leaks between cases.
"""

from __future__ import annotations

import os

import fakeredis
import pytest
from sessionkeeper.container import get_container
from sessionkeeper.core.config import TestingConfig
from sessionkeeper.core.extensions import db as _db  # Flask-SQLAlchemy instance
from sessionkeeper.factory import create_app  # application factory under test

from tests.helpers.clock import FakeClock


@pytest.fixture()
def app():
    """Create a Flask application configured for testing.

    Yields
    ------
    flask.Flask
        Application with :class:`TestingConfig` applied, an active app
        context and all tables created.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def db(app):
    """Return the database extension bound to the testing application."""
    return _db


@pytest.fixture()
def session(db):
    """Provide the scoped session and register it for Factory Boy.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        The Flask-SQLAlchemy session the application code also uses.
    """
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(db.session)
    yield db.session
    SQLAlchemySession.set(None)


@pytest.fixture()
def client(app):
    """Flask test client sharing the fixture's app context."""
    return app.test_client()


@pytest.fixture()
def cli_runner(app):
    """Click runner invoking the application's CLI groups."""
    return app.test_cli_runner()


@pytest.fixture()
def container(app):
    """Service container wired for the testing application."""
    return get_container(app)


@pytest.fixture()
def clock() -> FakeClock:
    """Controllable clock starting at the current UTC time."""
    return FakeClock()


@pytest.fixture()
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r

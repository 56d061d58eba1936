"""
Shared pytest fixtures for the POD Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / make_pod: ORM factories (flush, no commit)
"""

import pytest

from podtracker import create_app
from podtracker.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Return a factory that adds a User and flushes it."""
    from podtracker.models.identity import User

    def _make(*, email=None, name=None, role="REGULAR", imported=False, merged_into=None):
        user = User(
            email=email,
            name=name,
            role=role,
            is_imported_profile=imported,
            merged_into_user_id=merged_into.id if merged_into else None,
        )
        _db.session.add(user)
        _db.session.flush()
        return user

    return _make


@pytest.fixture()
def make_pod():
    """Return a factory that adds a Pod row directly (no side channels)."""
    from podtracker.models.pod import Pod

    def _make(pod="POD-001", **fields):
        row = Pod(pod=pod, **fields)
        _db.session.add(row)
        _db.session.flush()
        return row

    return _make

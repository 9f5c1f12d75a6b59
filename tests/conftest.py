"""
Shared pytest fixtures for the TaskPilot test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / auth_headers: user factory and bearer-token headers
    - hierarchy: owner + organization → workspace → project, created via services
"""

import uuid

import pytest

from taskpilot import create_app
from taskpilot.models import db as _db
from taskpilot.models.auth import User
from taskpilot.services import hierarchy_service
from taskpilot.services.jwt_service import generate_access_token


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


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: create and commit a User; ``role`` is the global role."""

    def _make(email=None, *, role="USER", full_name=None):
        email = email or f"user-{uuid.uuid4().hex[:8]}@taskpilot.test"
        user = User(email=email, full_name=full_name or email, role=role, status="active")
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def auth_headers(app):
    """Factory: bearer-token headers for a User (or a raw user id)."""

    def _headers(user) -> dict:
        user_id = user.id if isinstance(user, User) else str(user)
        token = generate_access_token(user_id)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    return _headers


@pytest.fixture()
def hierarchy(make_user):
    """Owner user plus Org → Workspace → private Project, each owned by that user."""
    owner = make_user("owner@taskpilot.test")
    org = hierarchy_service.create_organization(
        {"name": "Acme", "slug": "acme"}, owner_id=owner.id,
    )
    ws = hierarchy_service.create_workspace(
        org.id, {"name": "Engineering"}, creator_id=owner.id,
    )
    project = hierarchy_service.create_project(
        ws.id, {"name": "Backend", "slug": "backend"}, creator_id=owner.id,
    )
    return {"owner": owner, "org": org, "workspace": ws, "project": project}

"""Shared test fixtures for the team sheet test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- store: the app's SQL record store
- seed_data: an admin and a sales rep with known passwords
- make_record: LeadRecord factory with sensible defaults
- login: log the test client in as a seeded member
- fresh_records: re-read the store past the session identity map
"""

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from app.extensions import db as _db
from app.models.records import LeadRecord
from app.models.team_member import TeamMember
from app.services.record_store import get_record_store

# Fixed "now" for view/timeline tests: 2026-03-02 12:00:00 UTC
NOW = 1772452800000
DAY = 24 * 60 * 60 * 1000


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def store(app, db_session):
    return get_record_store()


@pytest.fixture
def seed_data(app, db_session):
    """Seed an admin (Ada Admin) and a sales rep (Sam Rep).

    Returns plain ids and names so tests can use them across contexts.
    """
    admin = TeamMember(
        id="ada_admin",
        name="Ada Admin",
        role="admin",
        email="ada@example.com",
        password_hash=generate_password_hash("admin123"),
    )
    rep = TeamMember(
        id="sam_rep",
        name="Sam Rep",
        role="sales_rep",
        password_hash=generate_password_hash("rep123"),
    )
    _db.session.add_all([admin, rep])
    _db.session.commit()

    return {
        "admin": admin,
        "admin_id": admin.id,
        "admin_name": admin.name,
        "rep": rep,
        "rep_id": rep.id,
        "rep_name": rep.name,
    }


@pytest.fixture
def make_record():
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        n = counter["n"]
        defaults = {
            "id": f"lead_{n}",
            "name": f"Lead {n}",
            "status": "NEW",
            "added_at": NOW - n * 1000,
            "last_updated": NOW - n * 1000,
        }
        defaults.update(fields)
        return LeadRecord(**defaults)

    return _make


@pytest.fixture
def login(client):
    def _login(member_id, password):
        resp = client.post(
            "/auth/login",
            json={"member_id": member_id, "password": password},
        )
        assert resp.status_code == 200, resp.get_json()
        return resp

    return _login


@pytest.fixture
def fresh_records(store):
    """Snapshot by id that ignores anything cached in the test's own session."""

    def _fresh():
        _db.session.expire_all()
        return {r.id: r for r in store.snapshot()}

    return _fresh

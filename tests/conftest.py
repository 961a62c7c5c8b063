"""Pytest configuration and fixtures."""

import os

# Keep the app off the on-disk database and away from Graph during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from signin.config import Settings
from signin.database import Base, enable_sqlite_foreign_keys, get_db
from signin.main import app
from signin.models import Checkin, Group, GroupMember, Key, KeyLocation, Location, LocationGroup, User, UserLocation
from signin.services.auth_service import (
    PROVIDER_ENTRA,
    LocalAdminAuthenticator,
    SessionService,
    get_local_admin,
    get_session_service,
)


# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_ADMIN_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL=SQLALCHEMY_DATABASE_URL,
        SESSION_SECRET="test-session-secret",
        INITIAL_ADMIN_PASSWORD=TEST_ADMIN_PASSWORD,
        SYNC_ENABLED=False,
        SYNC_INTERVAL_SECONDS=1,
        SYNC_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def sessions(test_settings):
    return SessionService(test_settings)


@pytest.fixture
def local_admin(test_settings):
    return LocalAdminAuthenticator(test_settings)


@pytest.fixture(scope="function")
def client(db, sessions, local_admin):
    """Create a test client with overridden database and auth dependencies."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_service] = lambda: sessions
    app.dependency_overrides[get_local_admin] = lambda: local_admin
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(display_name=None, upn=None, is_admin=False, object_id=None, department=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            upn=upn or f"user{n}@school.example",
            display_name=display_name or f"User {n}",
            object_id=object_id,
            department=department,
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_group(db):
    counter = {"n": 0}

    def _make(display_name=None, members=(), object_id=None):
        counter["n"] += 1
        group = Group(display_name=display_name or f"Group {counter['n']}", object_id=object_id)
        db.add(group)
        db.flush()
        for user in members:
            db.add(GroupMember(group_id=group.id, user_id=user.id))
        db.commit()
        db.refresh(group)
        return group

    return _make


@pytest.fixture
def make_location(db):
    counter = {"n": 0}

    def _make(name=None, identifier=None, groups=(), notes_enabled=False):
        counter["n"] += 1
        n = counter["n"]
        location = Location(
            name=name or f"Location {n}",
            identifier=identifier or f"loc-{n}",
            notes_enabled=notes_enabled,
        )
        db.add(location)
        db.flush()
        for position, group in enumerate(groups):
            db.add(LocationGroup(location_id=location.id, group_id=group.id, position=position))
        db.commit()
        db.refresh(location)
        return location

    return _make


@pytest.fixture
def make_key(db):
    counter = {"n": 0}

    def _make(locations=(), key_value=None, description=None):
        counter["n"] += 1
        key = Key(key_value=key_value or f"kiosk-key-{counter['n']}", description=description)
        db.add(key)
        db.flush()
        for location in locations:
            db.add(KeyLocation(key_id=key.id, location_id=location.id))
        db.commit()
        db.refresh(key)
        return key

    return _make


@pytest.fixture
def grant(db):
    def _grant(user, location):
        db.add(UserLocation(user_id=user.id, location_id=location.id))
        db.commit()

    return _grant


@pytest.fixture
def make_checkin(db):
    def _make(user, location, direction="in", occurred_at=None, key=None, notes=None):
        checkin = Checkin(
            user_id=user.id,
            location_id=location.id,
            key_id=key.id if key else None,
            direction=direction,
            notes=notes,
        )
        if occurred_at is not None:
            checkin.occurred_at = occurred_at
        db.add(checkin)
        db.commit()
        db.refresh(checkin)
        return checkin

    return _make


# =============================================================================
# Console sessions
# =============================================================================

@pytest.fixture
def auth_headers(sessions):
    """Bearer headers for a directory user's console session."""
    def _headers(user):
        token, _ = sessions.issue(user.upn, user.display_name, PROVIDER_ENTRA)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_user(make_user):
    return make_user(display_name="Ada Admin", upn="ada.admin@school.example", is_admin=True)


@pytest.fixture
def admin_headers(auth_headers, admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def session_factory(db):
    """Session factory bound to the test database, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture
def admin_password():
    return TEST_ADMIN_PASSWORD

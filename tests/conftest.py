"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from taskgrid import models  # noqa: F401
from taskgrid.api.dependencies import get_sharing_service
from taskgrid.database import Base, get_db
from taskgrid.main import app
from taskgrid.models.category import Category
from taskgrid.models.enums import ResourceType
from taskgrid.models.list import List
from taskgrid.models.task import Task
from taskgrid.models.user import User
from taskgrid.services.auth import create_access_token
from taskgrid.services.events import parse_event
from taskgrid.services.graph import InMemoryGraphStore, ResourceRef
from taskgrid.services.locks import ResourceLockManager
from taskgrid.services.notification_bridge import NotificationBridge, deliver_event
from taskgrid.services.sharing import SharingService
from taskgrid.services.sql_graph import SqlGraphStore


class AuthHeaders(dict):
    """Dict subclass that also stores user_id."""

    def __init__(self, *args, user_id: int | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/taskgrid", "/taskgrid_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield
    # Don't drop database - just leave it for next run (each test cleans up after itself)


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(autouse=True)
def pushed():
    """Capture push frames instead of publishing them to Redis."""
    with patch(
        "taskgrid.services.notification_bridge.publish_user_event", return_value=True
    ) as mock_publish:
        yield mock_publish


@pytest.fixture
def bridge(db):
    """Bridge that delivers events inline, the way the worker would."""
    return NotificationBridge(dispatch=lambda payload: deliver_event(db, parse_event(payload)))


@pytest.fixture
def sharing(db, bridge):
    """Sharing service over the test database with its own locks."""
    return SharingService(SqlGraphStore(db), bridge, locks=ResourceLockManager())


@pytest.fixture(scope="function")
def client(db, sharing):
    """Create a test client with database and service overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sharing_service] = lambda: sharing
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory creating users."""

    def _make_user(email: str, name: str | None = None) -> User:
        user = User(email=email, name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com", "Alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", "Bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol@example.com", "Carol")


def headers_for(user: User) -> AuthHeaders:
    token = create_access_token(user_id=user.id, email=user.email)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user.id)


@pytest.fixture
def auth_headers(alice):
    """Auth headers for Alice, who owns the ``workspace`` resources."""
    return headers_for(alice)


@pytest.fixture
def workspace(db, alice):
    """Alice's list with one category and two tasks, one of them in the category."""
    lst = List(name="Home", owner_id=alice.id)
    db.add(lst)
    db.commit()

    category = Category(list_id=lst.id, name="Kitchen")
    db.add(category)
    db.commit()

    in_category = Task(list_id=lst.id, category_id=category.id, name="Clean oven")
    loose = Task(list_id=lst.id, name="Water plants")
    db.add_all([in_category, loose])
    db.commit()

    return {"list": lst, "category": category, "task": in_category, "loose_task": loose}


@pytest.fixture
def headers():
    """Build auth headers for any user."""
    return headers_for


# In-memory graph fixtures

ALICE, BOB, CAROL = 1, 2, 3

LIST = ResourceRef(ResourceType.LIST, 1)
CATEGORY = ResourceRef(ResourceType.CATEGORY, 10)
TASK = ResourceRef(ResourceType.TASK, 100)
LOOSE_TASK = ResourceRef(ResourceType.TASK, 101)


class RecordingEmitter:
    """Collects emitted events in order."""

    def __init__(self):
        self.events = []
        self.batches = []

    def emit(self, event):
        self.emit_many([event])

    def emit_many(self, events):
        self.batches.append(list(events))
        self.events.extend(events)


@pytest.fixture
def graph():
    """Arena with Alice's list 1, category 10, task 100 (in 10) and task 101."""
    store = InMemoryGraphStore()
    store.add_resource(LIST, owner_id=ALICE)
    store.add_resource(CATEGORY, owner_id=None, parent=LIST)
    store.add_resource(TASK, owner_id=None, parent=LIST, category_id=CATEGORY.id)
    store.add_resource(LOOSE_TASK, owner_id=None, parent=LIST)
    return store


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def service(graph, emitter):
    """Sharing service over the in-memory arena."""
    return SharingService(graph, emitter, locks=ResourceLockManager(), lock_timeout=0.5)

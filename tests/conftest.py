"""Shared test configuration: a throwaway SQLite file per test session."""

import os
import shutil
import tempfile

# Always a private database: the schema fixture drops every table
_tmp_dir = tempfile.mkdtemp(prefix="manito-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from core.group_manager import GroupManager
from core.membership_registry import MembershipRegistry


@pytest.fixture(autouse=True)
def schema():
    """Fresh tables for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_group(db):
    """Create a group whose first user is the captain and the rest joined."""

    def _make(name="Winter24", users=("A", "B", "C", "D"), password=None):
        captain, *others = users
        group = GroupManager.create_group(db, name, captain, password=password)
        for user_id in others:
            MembershipRegistry.join(db, group.id, user_id, password)
        return group.id

    return _make


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_tmp_dir, ignore_errors=True)

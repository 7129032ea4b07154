"""
Root conftest.py -- shared fixtures for all test levels.
"""
import os
import sys
import uuid
from datetime import date
from decimal import Decimal

import pytest

# Ensure sitebooks is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# In-memory SQLite for every test; settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sitebooks.db import Base
from sitebooks.auth.principal import Principal
from sitebooks.auth.security import get_password_hash
from sitebooks.models.enums import Role
from sitebooks.models.models import Project, User, Worker


TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    _password_hash = get_password_hash(TEST_PASSWORD)

    def _make(role: Role = Role.supervisor, username: str = None, **kwargs) -> User:
        username = username or f"{role.value}-{uuid.uuid4().hex[:8]}"
        user = User(
            username=username,
            name=kwargs.pop("name", username.title()),
            email=kwargs.pop("email", f"{username}@example.com"),
            password_hash=_password_hash,
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_project(db):
    def _make(supervisor: User, name: str = None, **kwargs) -> Project:
        project = Project(
            name=name or f"Project {uuid.uuid4().hex[:6]}",
            location=kwargs.pop("location", "Pune"),
            start_date=kwargs.pop("start_date", date(2024, 1, 1)),
            supervisor_id=supervisor.id,
            **kwargs,
        )
        db.add(project)
        db.commit()
        return project

    return _make


@pytest.fixture
def make_worker(db):
    def _make(project: Project = None, name: str = None, daily_wage: str = "800", **kwargs) -> Worker:
        worker = Worker(
            name=name or f"Worker {uuid.uuid4().hex[:6]}",
            trade=kwargs.pop("trade", "mason"),
            daily_wage=Decimal(daily_wage),
            project_id=project.id if project else None,
            **kwargs,
        )
        db.add(worker)
        db.commit()
        return worker

    return _make


def principal_for(user: User) -> Principal:
    return Principal(id=user.id, role=user.role)


@pytest.fixture
def admin(make_user):
    return make_user(Role.admin, username="admin")


@pytest.fixture
def supervisor(make_user):
    return make_user(Role.supervisor, username="sam")


@pytest.fixture
def other_supervisor(make_user):
    return make_user(Role.supervisor, username="olga")


@pytest.fixture
def site(make_project, supervisor):
    """Project P1, owned by ``supervisor``."""
    return make_project(supervisor, name="P1")


@pytest.fixture
def other_site(make_project, other_supervisor):
    """Project P2, owned by ``other_supervisor``."""
    return make_project(other_supervisor, name="P2")


@pytest.fixture
def as_principal():
    return principal_for


@pytest.fixture
def test_password():
    return TEST_PASSWORD

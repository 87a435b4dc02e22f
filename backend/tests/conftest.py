"""
Pytest configuration and fixtures for the Graphēon auth tests.

Provides:
- A fresh in-memory SQLite database per test
- A session bound to it
- An AuthManager wired with a counting stub password checker
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth.manager import AuthManager
from database import init_db
from models import Group, Target, User
from utils.locks import LockManager


class CountingPasswordChecker:
    """Stand-in for the bcrypt comparison: stored hashes are ``hashed:<pw>``."""

    def __init__(self):
        self.calls = 0

    def __call__(self, password: str, hashed: str) -> bool:
        self.calls += 1
        return hashed == fake_hash(password)


def fake_hash(password: str) -> str:
    return f"hashed:{password}"


@pytest.fixture
def engine():
    """
    In-memory SQLite engine with every auth table created.

    ``StaticPool`` keeps the single in-memory connection alive for the
    whole test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    with factory() as session:
        yield session


@pytest.fixture
def password_checker():
    return CountingPasswordChecker()


@pytest.fixture
def manager(session, password_checker):
    return AuthManager(
        session,
        graph_name="hugegraph",
        password_checker=password_checker,
        lock_manager=LockManager(),
    )


@pytest.fixture
def make_user(manager):
    """Factory creating a user whose password is checked by the stub checker."""

    def _make(name: str, password: str = "secret") -> User:
        user = User(name=name, password=fake_hash(password), creator="tests")
        manager.create_user(user)
        return user

    return _make


@pytest.fixture
def make_group(manager):
    def _make(name: str) -> Group:
        group = Group(name=name, creator="tests")
        manager.create_group(group)
        return group

    return _make


@pytest.fixture
def make_target(manager):
    def _make(name: str, graph: str = "hugegraph", resources=None) -> Target:
        target = Target(
            name=name,
            graph=graph,
            url="localhost:8080",
            resources=resources or [],
            creator="tests",
        )
        manager.create_target(target)
        return target

    return _make

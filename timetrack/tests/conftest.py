"""
Pytest configuration and fixtures for time tracker testing.

Provides a SQLite-backed repository on a temporary file, a frozen clock, a
retry policy that never sleeps, seeded users and the services under test.
"""
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest

from timetrack.auth.authorization import Authorizer
from timetrack.config import Settings
from timetrack.database.connection import StoreHandle, create_store
from timetrack.database.repository import WriteMode
from timetrack.database.sql_repository import SqlAlchemyRepository
from timetrack.schemas import User, UserRole, new_user
from timetrack.schemas.user import SYSTEM
from timetrack.services.projects import ProjectService
from timetrack.services.retry import RetryPolicy
from timetrack.services.time_tracking import TimeTrackingService
from timetrack.services.users import UserService

ADMIN_API_KEY = "AdminTestKey00000000000000000000"
ALICE_API_KEY = "AliceTestKey00000000000000000000"
BOB_API_KEY = "BobTestKey0000000000000000000000"


class FrozenClock:
    """Server clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'time_tracker.db'}",
        store_timeout_seconds=10.0,
        store_max_retries=2,
        store_retry_base_delay_ms=1,
        max_projects=3,
    )


@pytest.fixture
def store(settings: Settings) -> Generator[StoreHandle, None, None]:
    """Store handle for one test."""
    handle = create_store(settings)
    yield handle
    handle.dispose()


@pytest.fixture
def repository(store: StoreHandle) -> SqlAlchemyRepository:
    """Repository with the storage layout in place."""
    repo = SqlAlchemyRepository(store)
    repo.ensure_layout()
    return repo


@pytest.fixture
def retry() -> RetryPolicy:
    """Retry policy that records its sleeps instead of sleeping."""
    sleeps = []
    return RetryPolicy(max_retries=2, base_delay_ms=1, sleep=sleeps.append)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc))


def _seed_user(repository, username: str, role: UserRole, api_key: str) -> User:
    user = new_user(username, role, created_by=SYSTEM, api_key=api_key)
    return repository.put_user(user, WriteMode.CREATE_ONLY)


@pytest.fixture
def admin(repository) -> User:
    return _seed_user(repository, "admin", UserRole.ADMIN, ADMIN_API_KEY)


@pytest.fixture
def alice(repository) -> User:
    return _seed_user(repository, "alice", UserRole.USER, ALICE_API_KEY)


@pytest.fixture
def bob(repository) -> User:
    return _seed_user(repository, "bob", UserRole.USER, BOB_API_KEY)


@pytest.fixture
def authorizer(repository, retry) -> Authorizer:
    return Authorizer(repository, retry)


@pytest.fixture
def time_tracking(repository, retry, clock) -> TimeTrackingService:
    return TimeTrackingService(repository, retry, clock=clock)


@pytest.fixture
def projects(repository, retry, settings) -> ProjectService:
    return ProjectService(repository, retry, max_projects=settings.max_projects)


@pytest.fixture
def users(repository, retry) -> UserService:
    return UserService(repository, retry)


@pytest.fixture
def demo_project(projects, alice, clock):
    """Project "demo" owned by alice."""
    return projects.create(alice, "demo", now=clock())

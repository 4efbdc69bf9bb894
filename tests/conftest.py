"""Test configuration and fixtures."""

from datetime import datetime, timedelta

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from cfd_journal.db import models  # noqa: F401
from cfd_journal.db.repository import JournalRepository
from cfd_journal.domain.lifecycle import PositionLifecycle
from cfd_journal.domain.models import CommissionRates


class FakeClock:
    """Settable clock so fee calculations can span days."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(name="session")
def session_fixture():
    """Create in-memory SQLite test database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="repo")
def repo_fixture(session: Session):
    return JournalRepository(session)


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock(datetime(2025, 3, 3, 10, 0, 0))


@pytest.fixture(name="lifecycle")
def lifecycle_fixture(repo, clock):
    return PositionLifecycle(repo, clock=clock, report_timezone="UTC")


@pytest.fixture(name="test_account")
def test_account_fixture(lifecycle):
    """Create test account with 0.25% open/close and 7% night commission."""
    return lifecycle.create_account(
        "Main", 10000.0, CommissionRates(open_close_pct=0.25, night_pct=7.0)
    )

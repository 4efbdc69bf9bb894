# cfd_journal/db/session.py
"""Database session factory and initialization."""

from pathlib import Path

from sqlmodel import SQLModel, create_engine, Session

from cfd_journal import config

DATABASE_URL = config.DATABASE_URL

# Make sure the folder of a file-backed SQLite database exists
if DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "")
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
    echo=False,
)


def create_db_and_tables():
    """Create all tables if they don't exist."""
    # Register table metadata before create_all
    from cfd_journal.db import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    """Get a new database session."""
    return Session(engine)


def init_db():
    """Initialize database on startup."""
    create_db_and_tables()

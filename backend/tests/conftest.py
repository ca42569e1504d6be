"""
Shared fixtures.

The environment is pinned before the package is imported so the module-level
engine never points at a real PostgreSQL server and no external
collaborator is configured.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LLM_API_KEY"] = ""
os.environ["BREVO_API_KEY"] = ""
os.environ["ES_API_KEY"] = ""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from verdictrace.database import Base
from verdictrace.models import db_models  # noqa: F401  (registers tables)
from verdictrace.models.signals import ScanWindow

from helpers import SCAN_NOW, SCAN_START


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.notify = MagicMock(return_value=1)
    return notifier


@pytest.fixture
def window():
    return ScanWindow(start=SCAN_START, end=SCAN_NOW)


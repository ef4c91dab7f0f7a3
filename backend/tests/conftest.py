"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers every table on Base.metadata
from database import Base, ConnectionProvider
from services.preference_store import PreferenceStore
from services.upsert import EmulatedUpsert
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    channel,
    channel_policy,
    old_post,
    team,
    team_policy,
)


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="provider")
def provider_fixture(engine):
    return ConnectionProvider(engine)


@pytest.fixture(name="db")
def db_fixture(provider):
    """A primary session for arranging and inspecting rows directly."""
    session = provider.primary_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="store")
def store_fixture(provider):
    """Store using the dialect's native upsert (SQLite ON CONFLICT)."""
    return PreferenceStore(provider)


@pytest.fixture(name="emulated_store")
def emulated_store_fixture(provider):
    """Store forced onto the count-then-branch upsert used for PostgreSQL."""
    return PreferenceStore(provider, upsert_strategy=EmulatedUpsert())

"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.dependencies import get_chain_executor
from database import Base, build_engine, get_db
from main import app
from services.depletion_events import DepletionBus, get_depletion_bus
from services.depletion_service import DepletionService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    award_context,
    batch,
    bound_batch,
    holding,
    single_batch,
)
from tests.fixtures.mocks import MockChainExecutor


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="file_session_factory")
def file_session_factory_fixture(tmp_path):
    """A sessionmaker on a file-backed SQLite database.

    Sessions from this factory use separate connections, so tests can
    interleave two writers the way two API requests would.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture(name="mock_chain")
def mock_chain_fixture():
    """A chain executor that succeeds unless told otherwise."""
    return MockChainExecutor()


@pytest.fixture(name="depletion_bus")
def depletion_bus_fixture(db):
    """A bus whose subscriber records triggers in the test session."""
    bus = DepletionBus()

    def record(event):
        DepletionService.on_batch_depleted(db, event)
        db.commit()

    bus.subscribe(record)
    return bus


@pytest.fixture(name="client")
def client_fixture(db, mock_chain, depletion_bus):
    """Create a test client with the test database and a mock chain."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain_executor] = lambda: mock_chain
    app.dependency_overrides[get_depletion_bus] = lambda: depletion_bus
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

"""Fixtures for end-to-end tests against a real PostgreSQL server.

PostgreSQL tests are skipped unless ``DATABASE__ENABLE_POSTGRES_TESTS=true``
(they need Docker for testcontainers).
"""

from __future__ import annotations

from test.settings import test_settings

import pytest
from testcontainers.postgres import PostgresContainer

from session_continuity.core.database import create_all, create_engine, create_sessionmaker, drop_all


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL container for the test session."""
    config = test_settings.database.postgres
    container = PostgresContainer(config.image, username=config.user, password=config.password, dbname=config.db)
    container.start()
    yield container
    container.stop()


@pytest.fixture
def postgres_url(postgres_container) -> str:
    return postgres_container.get_connection_url()


@pytest.fixture
async def pg_engine(postgres_url):
    """Engine on the container with a fresh continuity schema."""
    engine = create_engine(postgres_url)
    await drop_all(engine)
    await create_all(engine)
    yield engine
    await drop_all(engine)
    await engine.dispose()


@pytest.fixture
def pg_session_factory(pg_engine):
    return create_sessionmaker(pg_engine)

"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import os
import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring PostgreSQL (deselect with '-m \"not db\"')"
    )


@pytest.fixture(scope="session")
def test_database():
    """
    Session-scoped fixture that automatically manages the test database container.

    Uses testcontainers to start PostgreSQL before tests and stops it after
    all tests complete. Falls back to external database if TEST_DATABASE_URL
    is set.
    """
    # If TEST_DATABASE_URL is set, use external database
    external_url = os.environ.get("TEST_DATABASE_URL")
    if external_url:
        from tests import is_database_available
        if is_database_available():
            yield external_url
            return
        else:
            pytest.skip("External database not available")

    # Try to use testcontainers for automatic container management
    try:
        from testcontainers.postgres import PostgresContainer

        postgres = PostgresContainer(
            image="postgres:16-alpine",
            username="testuser",
            password="testpass",
            dbname="ringcall_test",
            port=5432
        )
        postgres.start()
    except Exception as e:
        pytest.skip(f"Could not start test database container: {e}")

    db_url = postgres.get_connection_url()
    print(f"\n✓ Test database started: {db_url}")

    yield db_url

    # Cleanup after all tests
    postgres.stop()
    print("\n✓ Test database stopped")


@pytest.fixture(scope="session")
def test_db_url(test_database):
    """Get test database URL."""
    return test_database


@pytest.fixture
def pg_session_factory(test_db_url):
    """
    Session factory over PostgreSQL with fresh tables and usable credentials.

    Tables are dropped again after the test.
    """
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    from database.models import Base
    from database.init_db import init_db
    from database.repositories import DeliveryConfigRepository
    from tests import TEST_SHARED_SECRET, TEST_GATEWAY_KEY

    engine = create_engine(test_db_url, pool_size=10)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    init_db(bind=engine, session_factory=factory)

    session = factory()
    try:
        DeliveryConfigRepository(session).update_secrets(TEST_SHARED_SECRET, TEST_GATEWAY_KEY, "tests")
        session.commit()
    finally:
        session.close()

    yield factory

    Base.metadata.drop_all(engine)
    engine.dispose()

"""
Pytest configuration and fixtures for siteledger tests

This module provides shared fixtures for unit and integration tests.
"""
from datetime import datetime, timezone
from typing import Generator

import pytest

from siteledger.store.memory_store import InMemorySiteStore

FIXED_NOW = datetime(2025, 11, 17, 10, 0, 0, tzinfo=timezone.utc)

POSTGRES_USER = "test_siteledger"
POSTGRES_PASSWORD = "test_password"
POSTGRES_DB = "test_siteledger"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture
def memory_store() -> InMemorySiteStore:
    """Empty in-memory site store"""
    return InMemorySiteStore()


@pytest.fixture
def fixed_clock():
    """Clock returning a constant UTC time"""
    return lambda: FIXED_NOW


def build_item(company_id: str, category: str, key_number: int, **attributes) -> dict:
    """
    Build a raw store item the way an earlier creation would have written it.

    Keyword attributes override the computed ones, so tests can seed odd
    id values (e.g. productionSiteId="abc").
    """
    prefix = "P" if category == "production" else "C"
    id_field = "productionSiteId" if category == "production" else "consumptionSiteId"

    return {
        "companyId": company_id,
        id_field: str(key_number),
        "PK": f"{company_id}_{prefix}{key_number:04d}",
        "SK": "METADATA",
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-01T00:00:00.000Z",
        "version": 1,
        **attributes,
    }


@pytest.fixture
def make_item():
    """Factory for raw store items (see build_item)"""
    return build_item


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Skips the dependent tests when testcontainers or Docker is unavailable.

    Yields:
        PostgresContainer instance
    """
    postgres_module = pytest.importorskip("testcontainers.postgres")

    container = postgres_module.PostgresContainer(
        image="postgres:16.2-alpine",
        username=POSTGRES_USER,
        password=POSTGRES_PASSWORD,
        dbname=POSTGRES_DB,
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available for PostgreSQL container: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def site_pool(postgres_container):
    """
    Session-wide connection pool with the site schema created

    Yields:
        Open DatabaseConnectionPool
    """
    from siteledger.store.connection import DatabaseConnectionPool
    from siteledger.store.schema_mgmt import SchemaManager

    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database=POSTGRES_DB,
        user=POSTGRES_USER,
        password=POSTGRES_PASSWORD,
        max_size=8,
    )
    pool.open()
    SchemaManager(pool).ensure_schema()

    yield pool

    pool.close()


@pytest.fixture
def clean_site_table(site_pool) -> Generator:
    """
    Provide an empty site table for each test

    Yields:
        Open DatabaseConnectionPool
    """
    site_pool.execute_command("TRUNCATE TABLE site_record")
    yield site_pool

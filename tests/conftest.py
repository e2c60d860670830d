"""Pytest configuration and fixtures for sqlite_bridge tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from sqlite_bridge.application import Connection
from sqlite_bridge.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def connection() -> Generator[Connection, None, None]:
    """Provide an in-memory connection, closed after the test."""
    conn = Connection()
    yield conn
    conn.close()


@pytest.fixture
def people(connection: Connection) -> Connection:
    """Provide a connection with a small populated table."""
    connection.execute(
        """
        CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT, team TEXT, score REAL);
        INSERT INTO people (name, team, score) VALUES ('ada', 'red', 3.5);
        INSERT INTO people (name, team, score) VALUES ('grace', 'blue', 4.0);
        INSERT INTO people (name, team, score) VALUES ('linus', 'red', 2.0);
        """
    )
    return connection


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests against libsqlite3")
    config.addinivalue_line("markers", "fts5: Tests that need an FTS5-enabled engine")

"""
Pytest configuration and fixtures for dbharness tests.

Unit tests replace real connections with mocks built by ``fake_connection``;
integration-style tests use SQLite, which needs no server.
"""
from pathlib import Path
from unittest.mock import Mock

import pytest

from dbharness.db.platforms import DialectVariant
from dbharness.events import EventManager


@pytest.fixture
def fake_connection():
    """Build a mock TestConnection for a dialect variant."""
    def factory(variant: DialectVariant = DialectVariant.GENERIC) -> Mock:
        connection = Mock(name=f"{variant.value}_connection")
        connection.dialect_variant = variant
        connection.event_manager = EventManager()
        connection.schema_manager = Mock(name="schema_manager")
        connection.create_schema_manager.return_value = connection.schema_manager
        return connection

    return factory


@pytest.fixture
def server_source():
    """Configuration source for a server-based engine."""
    return {
        'db_driver': 'postgresql+psycopg2',
        'db_user': 'tester',
        'db_password': 'secret',
        'db_host': 'localhost',
        'db_port': '5432',
        'db_dbname': 'dbharness_tests',
    }


@pytest.fixture
def sqlite_file_source(tmp_path: Path):
    """Configuration source for a file-backed SQLite test database."""
    return {
        'db_driver': 'sqlite',
        'db_path': str(tmp_path / 'harness.db'),
    }


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "database: Tests requiring a real (SQLite) database")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names."""
    for item in items:
        if "integration" in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)

        if "sqlite" in item.nodeid.lower():
            item.add_marker(pytest.mark.database)

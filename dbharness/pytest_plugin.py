"""pytest plugin exposing the test harness as fixtures.

Registered through the ``pytest11`` entry point. Fixtures:

- ``dbharness``: session-wide TestHarness built from the layered configuration
- ``db_params``: resolved connection parameters
- ``db_connection``: a TestConnection, closed after the test
- ``db_platform``: the connection's DatabasePlatform

Tests marked ``@pytest.mark.requires_driver("sqlite", ...)`` are skipped unless
the configured driver is one of the given names.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from dbharness.config.models import ConnectionParameters
from dbharness.config.parser import load_source
from dbharness.db.connection import TestConnection
from dbharness.db.platforms import DatabasePlatform
from dbharness.exceptions import ConfigurationError, MissingExtensionError
from dbharness.harness import TestHarness


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("dbharness")
    group.addoption(
        "--dbharness-config",
        action="store",
        default=None,
        help="YAML file with db_* / tmpdb_* connection settings",
    )
    parser.addini("dbharness_config", help="YAML file with db_* / tmpdb_* connection settings", default=None)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "requires_driver(*names): skip unless the configured database driver is one of names",
    )


@pytest.fixture(scope="session")
def dbharness(pytestconfig: pytest.Config) -> TestHarness:
    config_path = pytestconfig.getoption("dbharness_config") or pytestconfig.getini("dbharness_config") or None
    try:
        source = load_source(config_path)
    except ConfigurationError as exc:
        raise pytest.UsageError(f"dbharness: {exc}") from exc
    return TestHarness(source)


@pytest.fixture(autouse=True)
def _dbharness_requires_driver(request: pytest.FixtureRequest) -> None:
    marker = request.node.get_closest_marker("requires_driver")
    if marker is None:
        return

    harness = request.getfixturevalue("dbharness")
    try:
        matches = harness.is_driver_one_of(*marker.args)
    except MissingExtensionError as exc:
        pytest.skip(str(exc))
    if not matches:
        pytest.skip(f"requires one of drivers: {', '.join(marker.args)}")


@pytest.fixture
def db_params(dbharness: TestHarness) -> ConnectionParameters:
    try:
        return dbharness.get_connection_params()
    except MissingExtensionError as exc:
        pytest.skip(str(exc))


@pytest.fixture
def db_connection(dbharness: TestHarness) -> Iterator[TestConnection]:
    try:
        connection = dbharness.get_connection()
    except MissingExtensionError as exc:
        pytest.skip(str(exc))

    yield connection
    connection.close()


@pytest.fixture
def db_platform(db_connection: TestConnection) -> DatabasePlatform:
    return db_connection.get_database_platform()

"""Connection parameter resolution from a flat, prefix-keyed configuration source.

Resolution never fails: it only copies recognized keys across, it does not
validate them.
"""

from importlib.util import find_spec
from typing import Any, Mapping

from dbharness.config.models import (
    CONNECTION_PARAMETER_KEYS,
    DEFAULT_PREFIX,
    DRIVER_OPTION_INFIX,
    PRIVILEGED_PREFIX,
    ConnectionParameters,
)
from dbharness.exceptions import MissingExtensionError

FALLBACK_DRIVER = "sqlite"
FALLBACK_EVENT_SUBSCRIBERS = "SQLiteSessionInit"


def map_connection_parameters(source: Mapping[str, Any], prefix: str) -> ConnectionParameters:
    """Map ``{prefix}{key}`` entries of ``source`` onto connection parameters.

    Args:
        source: Flat configuration mapping.
        prefix: Key prefix, e.g. ``db_`` or ``tmpdb_``.

    Returns:
        Parameters holding only the keys present in ``source``.
    """
    parameters = {}

    for parameter in CONNECTION_PARAMETER_KEYS:
        value = source.get(prefix + parameter)
        if value is None:
            continue
        parameters[parameter] = value

    option_prefix = prefix + DRIVER_OPTION_INFIX
    driver_options = {}
    for key, value in source.items():
        if not key.startswith(option_prefix):
            continue
        driver_options[key[len(option_prefix):]] = value

    if driver_options:
        parameters["driver_options"] = driver_options

    return ConnectionParameters.from_mapping(parameters)


def has_required_params(source: Mapping[str, Any]) -> bool:
    """Whether a driver is configured under the default prefix."""
    return source.get(DEFAULT_PREFIX + "driver") is not None


def get_test_connection_params(source: Mapping[str, Any]) -> ConnectionParameters:
    return map_connection_parameters(source, DEFAULT_PREFIX)


def get_privileged_connection_params(source: Mapping[str, Any]) -> ConnectionParameters:
    """Parameters for a connection allowed to create and drop the test database.

    Uses the ``tmpdb_`` keys when a privileged driver is configured, otherwise
    the test parameters without ``dbname`` so no particular database is targeted.
    """
    if source.get(PRIVILEGED_PREFIX + "driver") is not None:
        return map_connection_parameters(source, PRIVILEGED_PREFIX)

    return map_connection_parameters(source, DEFAULT_PREFIX).without("dbname")


def get_fallback_connection_params() -> ConnectionParameters:
    """In-memory SQLite parameters used when no driver is configured.

    Raises:
        MissingExtensionError: If the sqlite3 module is not available.
    """
    if find_spec("sqlite3") is None:
        raise MissingExtensionError("The sqlite3 extension is not available", module="sqlite3")

    return ConnectionParameters.from_mapping({
        "driver": FALLBACK_DRIVER,
        "memory": True,
        "event_subscribers": FALLBACK_EVENT_SUBSCRIBERS,
    })


def get_connection_params(source: Mapping[str, Any]) -> ConnectionParameters:
    if has_required_params(source):
        return get_test_connection_params(source)

    return get_fallback_connection_params()


def is_driver_one_of(source: Mapping[str, Any], *names: str) -> bool:
    """Whether the resolved driver identifier is one of ``names``."""
    return get_connection_params(source).driver in names

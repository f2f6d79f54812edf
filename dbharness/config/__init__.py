"""Configuration management for dbharness."""

from dbharness.config.models import (
    CONNECTION_PARAMETER_KEYS,
    DEFAULT_PREFIX,
    PRIVILEGED_PREFIX,
    ConnectionParameters,
    EnvironmentSettings,
)
from dbharness.config.parser import (
    ConfigParser,
    create_sample_config,
    load_source,
)
from dbharness.config.resolver import (
    get_connection_params,
    get_fallback_connection_params,
    get_privileged_connection_params,
    get_test_connection_params,
    has_required_params,
    is_driver_one_of,
    map_connection_parameters,
)

__all__ = [
    # Models
    "CONNECTION_PARAMETER_KEYS",
    "DEFAULT_PREFIX",
    "PRIVILEGED_PREFIX",
    "ConnectionParameters",
    "EnvironmentSettings",
    # Parser
    "ConfigParser",
    "create_sample_config",
    "load_source",
    # Resolver
    "get_connection_params",
    "get_fallback_connection_params",
    "get_privileged_connection_params",
    "get_test_connection_params",
    "has_required_params",
    "is_driver_one_of",
    "map_connection_parameters",
]

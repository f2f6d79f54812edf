"""Configuration source loader for dbharness.

The configuration source is a flat mapping (``db_driver``, ``db_dbname``,
``tmpdb_user``, ...) assembled from three layers, lowest priority first:

1. a YAML file (``dbharness.yaml`` or the file named by ``DBHARNESS_CONFIG_FILE``),
2. process environment variables whose lower-cased name starts with a
   recognized prefix (``DB_DRIVER`` becomes ``db_driver``),
3. explicit overrides supplied by the caller.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import yaml

from dbharness.config.models import DEFAULT_PREFIX, PRIVILEGED_PREFIX, EnvironmentSettings
from dbharness.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigParser:
    """Configuration parser with environment variable interpolation."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')
    DEFAULT_LOCATIONS = (
        "dbharness.yaml",
        "dbharness.yml",
        "config/dbharness.yaml",
        "tests/dbharness.yaml",
    )

    def __init__(
        self,
        prefixes: Iterable[str] = (DEFAULT_PREFIX, PRIVILEGED_PREFIX),
        env_settings: Optional[EnvironmentSettings] = None,
    ) -> None:
        """Initialize the configuration parser.

        Args:
            prefixes: Key prefixes picked up from environment variables.
            env_settings: Settings override, mostly for tests.
        """
        self.prefixes = tuple(prefixes)
        self.env_settings = env_settings or EnvironmentSettings()

    def load_source(
        self,
        config_path: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """Build the layered configuration source.

        Args:
            config_path: Explicit YAML file. If None, default locations are searched
                and a missing file simply yields no file layer.
            overrides: Highest-priority values.
            environ: Environment mapping, defaults to ``os.environ``.

        Returns:
            Flat mapping of configuration keys to scalar values.

        Raises:
            ConfigurationError: If an explicit file is missing or any file is invalid.
        """
        source: Dict[str, Any] = {}

        config_file = self._find_config_file(config_path)
        if config_file is not None:
            source.update(self.load_file(config_file))

        source.update(self._load_environment(os.environ if environ is None else environ))

        if overrides:
            source.update({key: value for key, value in overrides.items() if value is not None})

        logger.debug("Configuration source has %d keys", len(source))
        return source

    def load_file(self, config_file: Union[str, Path]) -> Dict[str, Any]:
        """Load and flatten a single YAML configuration file.

        Raises:
            ConfigurationError: If the file cannot be read or is not a mapping.
        """
        config_file = Path(config_file)
        try:
            with open(config_file, 'r', encoding='utf-8') as file:
                raw_config = yaml.safe_load(file)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file '{config_file}' not found")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in '{config_file}': {e}")

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration file '{config_file}' must contain a mapping, got {type(raw_config).__name__}"
            )

        processed_config = self._process_env_vars(raw_config)

        if 'include' in processed_config:
            processed_config = self._process_includes(processed_config, config_file)

        logger.info("Loaded configuration from %s", config_file)
        return self._flatten(processed_config)

    def _find_config_file(self, config_path: Optional[Union[str, Path]]) -> Optional[Path]:
        """Find configuration file in default locations.

        Raises:
            ConfigurationError: If an explicitly requested file does not exist.
        """
        if config_path:
            path = Path(config_path)
            if path.exists():
                return path
            raise ConfigurationError(f"Configuration file '{config_path}' not found")

        if self.env_settings.config_file:
            path = Path(self.env_settings.config_file)
            if path.exists():
                return path
            raise ConfigurationError(
                f"Configuration file '{self.env_settings.config_file}' from DBHARNESS_CONFIG_FILE not found"
            )

        for location in self.DEFAULT_LOCATIONS:
            path = Path.cwd() / location
            if path.exists():
                return path

        logger.debug("No configuration file found in %s", ", ".join(self.DEFAULT_LOCATIONS))
        return None

    def _load_environment(self, environ: Mapping[str, str]) -> Dict[str, Any]:
        values = {}
        for name, value in environ.items():
            key = name.lower()
            if key.startswith(self.prefixes):
                values[key] = value
        return values

    def _flatten(self, config: Dict[str, Any], parent: str = "") -> Dict[str, Any]:
        """Join nested sections with underscores: ``{db: {driver: x}}`` -> ``db_driver``."""
        flat: Dict[str, Any] = {}
        for key, value in config.items():
            full_key = f"{parent}_{key}" if parent else str(key)
            if isinstance(value, dict):
                flat.update(self._flatten(value, full_key))
            else:
                flat[full_key] = value
        return flat

    def _process_env_vars(self, config: Any) -> Any:
        """Recursively process environment variables in configuration."""
        if isinstance(config, dict):
            return {key: self._process_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._process_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_env_vars(config)
        else:
            return config

    def _substitute_env_vars(self, value: str) -> str:
        """Substitute environment variables in a string.

        Raises:
            ConfigurationError: If required environment variable is not set.
        """
        def replace_var(match):
            var_expr = match.group(1)

            # ${VAR:-default}
            if ':-' in var_expr:
                var_name, default = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default.strip())

            var_name = var_expr.strip()
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ConfigurationError(f"Required environment variable '{var_name}' is not set")
            return env_value

        return self.ENV_VAR_PATTERN.sub(replace_var, value)

    def _process_includes(self, config: Dict[str, Any], base_path: Union[str, Path]) -> Dict[str, Any]:
        """Process include directives; included files have lower priority."""
        base_dir = Path(base_path).parent
        includes = config.pop('include')

        if not isinstance(includes, list):
            includes = [includes]

        for include_file in includes:
            include_path = base_dir / include_file

            try:
                with open(include_path, 'r', encoding='utf-8') as file:
                    included_config = yaml.safe_load(file)
            except FileNotFoundError:
                raise ConfigurationError(f"Included file '{include_path}' not found")
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in included file '{include_path}': {e}")

            if included_config:
                included_config = self._process_env_vars(included_config)
                config = self._merge_configs(included_config, config)

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries, ``override`` winning."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def create_sample_config(self, output_path: Union[str, Path]) -> None:
        """Create a sample configuration file.

        Args:
            output_path: Path where to create the sample configuration.
        """
        sample_config = {
            'db_driver': 'postgresql+psycopg2',
            'db_host': 'localhost',
            'db_port': 5432,
            'db_user': 'dbharness',
            'db_password': '${DB_PASSWORD:-dbharness}',
            'db_dbname': 'dbharness_tests',
            'db_driver_option_connect_timeout': 10,
            'tmpdb_driver': 'postgresql+psycopg2',
            'tmpdb_host': 'localhost',
            'tmpdb_port': 5432,
            'tmpdb_user': 'postgres',
            'tmpdb_password': '${TMPDB_PASSWORD:-postgres}',
            'tmpdb_dbname': 'postgres',
        }

        with open(output_path, 'w', encoding='utf-8') as file:
            yaml.safe_dump(sample_config, file, default_flow_style=False, sort_keys=False)


def load_source(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Load the configuration source, reading DBHARNESS_* settings at call time."""
    return ConfigParser().load_source(config_path, overrides)


def create_sample_config(output_path: Union[str, Path]) -> None:
    """Create a sample configuration file.

    Args:
        output_path: Output path for sample configuration.
    """
    ConfigParser().create_sample_config(output_path)

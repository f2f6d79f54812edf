"""
Tests for the layered configuration source loader.

Covers YAML loading, nested-section flattening, environment variable
interpolation, includes and the environment/override layers.
"""
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from dbharness.config import ConfigParser, EnvironmentSettings, create_sample_config, load_source
from dbharness.exceptions import ConfigurationError


def write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return path


@pytest.fixture
def parser():
    return ConfigParser(env_settings=EnvironmentSettings(config_file=None))


class TestLoadFile:
    """Test loading a single YAML file."""

    def test_flat_mapping(self, parser, tmp_path):
        """Test that flat keys load as-is."""
        config_file = write_yaml(tmp_path / 'db.yaml', {'db_driver': 'sqlite', 'db_path': 'x.db'})

        assert parser.load_file(config_file) == {'db_driver': 'sqlite', 'db_path': 'x.db'}

    def test_nested_sections_are_flattened(self, parser, tmp_path):
        """Test that nested sections join with underscores."""
        config_file = write_yaml(tmp_path / 'db.yaml', {
            'db': {'driver': 'mysql+pymysql', 'driver_option': {'connect_timeout': 5}},
            'tmpdb': {'user': 'root'},
        })

        assert parser.load_file(config_file) == {
            'db_driver': 'mysql+pymysql',
            'db_driver_option_connect_timeout': 5,
            'tmpdb_user': 'root',
        }

    def test_environment_interpolation(self, parser, tmp_path):
        """Test ${VAR} and ${VAR:-default} substitution."""
        config_file = write_yaml(tmp_path / 'db.yaml', {
            'db_password': '${HARNESS_TEST_PASSWORD}',
            'db_host': '${HARNESS_TEST_HOST:-localhost}',
        })

        with patch.dict(os.environ, {'HARNESS_TEST_PASSWORD': 's3cret'}):
            source = parser.load_file(config_file)

        assert source == {'db_password': 's3cret', 'db_host': 'localhost'}

    def test_missing_environment_variable(self, parser, tmp_path):
        """Test error when a required variable is not set."""
        config_file = write_yaml(tmp_path / 'db.yaml', {'db_password': '${HARNESS_UNSET_VARIABLE}'})

        with pytest.raises(ConfigurationError, match="HARNESS_UNSET_VARIABLE"):
            parser.load_file(config_file)

    def test_includes_have_lower_priority(self, parser, tmp_path):
        """Test that the including file overrides included values."""
        write_yaml(tmp_path / 'base.yaml', {'db_driver': 'sqlite', 'db_host': 'base-host'})
        config_file = write_yaml(tmp_path / 'db.yaml', {'include': 'base.yaml', 'db_host': 'main-host'})

        assert parser.load_file(config_file) == {'db_driver': 'sqlite', 'db_host': 'main-host'}

    def test_missing_include(self, parser, tmp_path):
        """Test error for an include that does not exist."""
        config_file = write_yaml(tmp_path / 'db.yaml', {'include': ['nope.yaml']})

        with pytest.raises(ConfigurationError, match="nope.yaml"):
            parser.load_file(config_file)

    def test_empty_file(self, parser, tmp_path):
        """Test that an empty file contributes nothing."""
        config_file = tmp_path / 'db.yaml'
        config_file.write_text('', encoding='utf-8')

        assert parser.load_file(config_file) == {}

    def test_non_mapping_file(self, parser, tmp_path):
        """Test error for a YAML list at the top level."""
        config_file = write_yaml(tmp_path / 'db.yaml', ['db_driver'])

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            parser.load_file(config_file)

    def test_invalid_yaml(self, parser, tmp_path):
        """Test error for malformed YAML."""
        config_file = tmp_path / 'db.yaml'
        config_file.write_text('db_driver: [unclosed', encoding='utf-8')

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            parser.load_file(config_file)


class TestLoadSource:
    """Test layering of file, environment and overrides."""

    def test_layers_in_priority_order(self, parser, tmp_path):
        """Test that environment beats file and overrides beat both."""
        config_file = write_yaml(tmp_path / 'db.yaml', {
            'db_driver': 'sqlite',
            'db_host': 'file-host',
            'db_user': 'file-user',
        })
        environ = {'DB_HOST': 'env-host', 'DB_USER': 'env-user', 'PATH': '/usr/bin'}

        source = parser.load_source(config_file, overrides={'db_user': 'cli-user'}, environ=environ)

        assert source == {'db_driver': 'sqlite', 'db_host': 'env-host', 'db_user': 'cli-user'}

    def test_environment_prefixes(self, parser):
        """Test that only db_/tmpdb_ variables are picked up, lower-cased."""
        environ = {'DB_DRIVER': 'sqlite', 'TMPDB_USER': 'root', 'DATABASE_URL': 'x', 'HOME': '/root'}

        source = parser.load_source(environ=environ)

        assert source == {'db_driver': 'sqlite', 'tmpdb_user': 'root'}

    def test_overrides_skip_none(self, parser):
        """Test that None overrides do not mask lower layers."""
        source = parser.load_source(overrides={'db_driver': None}, environ={'DB_DRIVER': 'sqlite'})

        assert source == {'db_driver': 'sqlite'}

    def test_no_default_file_is_not_an_error(self, parser, tmp_path, monkeypatch):
        """Test that a missing default file yields an empty source."""
        monkeypatch.chdir(tmp_path)

        assert parser.load_source(environ={}) == {}

    def test_default_location(self, parser, tmp_path, monkeypatch):
        """Test discovery of dbharness.yaml in the working directory."""
        write_yaml(tmp_path / 'dbharness.yaml', {'db_driver': 'sqlite'})
        monkeypatch.chdir(tmp_path)

        assert parser.load_source(environ={}) == {'db_driver': 'sqlite'}

    def test_explicit_missing_file(self, parser, tmp_path):
        """Test error when an explicit path does not exist."""
        with pytest.raises(ConfigurationError, match="not found"):
            parser.load_source(tmp_path / 'missing.yaml', environ={})

    def test_config_file_from_settings(self, tmp_path):
        """Test the DBHARNESS_CONFIG_FILE setting."""
        config_file = write_yaml(tmp_path / 'custom.yaml', {'db_driver': 'sqlite'})
        parser = ConfigParser(env_settings=EnvironmentSettings(config_file=str(config_file)))

        assert parser.load_source(environ={}) == {'db_driver': 'sqlite'}

    def test_module_level_load_source_reads_settings_at_call_time(self, tmp_path, monkeypatch):
        """Test that load_source honours DBHARNESS_CONFIG_FILE set after import."""
        config_file = write_yaml(tmp_path / 'custom.yaml', {'db_dbname': 'from_settings'})
        monkeypatch.setenv('DBHARNESS_CONFIG_FILE', str(config_file))

        assert load_source()['db_dbname'] == 'from_settings'


class TestSampleConfig:
    """Test sample configuration generation."""

    def test_sample_config_loads(self, parser, tmp_path):
        """Test that the sample is a loadable source with both prefixes."""
        output = tmp_path / 'sample.yaml'
        create_sample_config(output)

        source = parser.load_source(output, environ={})

        assert source['db_driver'] == 'postgresql+psycopg2'
        assert source['tmpdb_driver'] == 'postgresql+psycopg2'
        assert source['db_driver_option_connect_timeout'] == 10

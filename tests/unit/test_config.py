"""
Unit tests for configuration loading
"""

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from siteledger.config import AppSettings, StoreSettings, load_settings


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML configuration file and return its path"""

    def _write(data):
        path = tmp_path / "siteledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:
    """Tests for default settings"""

    def test_defaults(self):
        settings = load_settings(environ={})

        assert settings.store.host == "localhost"
        assert settings.store.port == 5432
        assert settings.store.table_name == "site_record"
        assert settings.store.password is None
        assert settings.scan_page_size == 100
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"
        assert settings.metrics_port is None


class TestYamlConfig:
    """Tests for YAML configuration files"""

    def test_load_yaml(self, config_file):
        path = config_file({
            "store": {"host": "db.internal", "port": 6543, "table_name": "sites_v2"},
            "scan_page_size": 250,
            "log_level": "debug",
        })

        settings = load_settings(path, environ={})

        assert settings.store.host == "db.internal"
        assert settings.store.port == 6543
        assert settings.store.table_name == "sites_v2"
        assert settings.scan_page_size == 250
        assert settings.log_level == "DEBUG"

    def test_config_path_from_environment(self, config_file):
        path = config_file({"store": {"database": "ledger_prod"}})

        settings = load_settings(environ={"SITELEDGER_CONFIG": str(path)})

        assert settings.store.database == "ledger_prod"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ValueError, match="mapping"):
            load_settings(path, environ={})

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_settings(path, environ={}) == AppSettings()


class TestEnvironmentOverrides:
    """Tests for environment variable overrides"""

    def test_env_overrides_file(self, config_file):
        path = config_file({"store": {"host": "from-file", "port": 5432}, "scan_page_size": 50})

        settings = load_settings(path, environ={
            "DB_HOST": "from-env",
            "DB_PORT": "15432",
            "DB_PASSWORD": "secret",
            "SITES_TABLE": "site_ledger",
            "SCAN_PAGE_SIZE": "500",
            "LOG_FORMAT": "text",
            "METRICS_PORT": "9100",
        })

        assert settings.store.host == "from-env"
        assert settings.store.port == 15432
        assert settings.store.password == "secret"
        assert settings.store.table_name == "site_ledger"
        assert settings.scan_page_size == 500
        assert settings.log_format == "text"
        assert settings.metrics_port == 9100

    def test_empty_env_values_ignored(self):
        settings = load_settings(environ={"DB_HOST": "", "LOG_LEVEL": ""})

        assert settings.store.host == "localhost"
        assert settings.log_level == "INFO"


class TestValidation:
    """Tests for invalid configuration values"""

    def test_unsafe_table_name(self):
        with pytest.raises(PydanticValidationError):
            load_settings(environ={"SITES_TABLE": "sites; DROP TABLE users"})

    def test_page_size_out_of_range(self):
        with pytest.raises(PydanticValidationError):
            load_settings(environ={"SCAN_PAGE_SIZE": "0"})

    def test_unknown_log_level(self):
        with pytest.raises(PydanticValidationError):
            AppSettings(log_level="VERBOSE")

    def test_invalid_port(self):
        with pytest.raises(PydanticValidationError):
            StoreSettings(port=70000)

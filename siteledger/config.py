"""
Configuration management.

Loads ledger settings from an optional YAML file and environment variables.

Expected YAML format:
```yaml
store:
  host: localhost
  port: 5432
  database: siteledger
  user: siteledger
  table_name: site_record
scan_page_size: 100
log_level: INFO
log_format: json
```

Environment variables override the file: DB_HOST, DB_PORT, DB_NAME,
DB_USER, DB_PASSWORD, SITES_TABLE, SCAN_PAGE_SIZE, LOG_LEVEL, LOG_FORMAT,
METRICS_PORT. SITELEDGER_CONFIG names the YAML file when no path is given.
"""

import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from siteledger.utils.validation import sanitize_sql_identifier

# env var -> (section, field); section None means top level
ENV_OVERRIDES = {
    "DB_HOST": ("store", "host"),
    "DB_PORT": ("store", "port"),
    "DB_NAME": ("store", "database"),
    "DB_USER": ("store", "user"),
    "DB_PASSWORD": ("store", "password"),
    "SITES_TABLE": ("store", "table_name"),
    "SCAN_PAGE_SIZE": (None, "scan_page_size"),
    "LOG_LEVEL": (None, "log_level"),
    "LOG_FORMAT": (None, "log_format"),
    "METRICS_PORT": (None, "metrics_port"),
}


class StoreSettings(BaseModel):
    """
    PostgreSQL connection and table settings.

    Attributes:
        host: Database host
        port: Database port
        database: Database name
        user: Database user
        password: Database password (required to open a pool)
        table_name: Site table name
        min_size: Minimum pool size
        max_size: Maximum pool size
        timeout: Connection timeout in seconds
    """

    host: str = "localhost"
    port: int = Field(5432, gt=0, le=65535)
    database: str = "siteledger"
    user: str = "siteledger"
    password: str | None = None
    table_name: str = "site_record"
    min_size: int = Field(1, ge=0)
    max_size: int = Field(10, ge=1)
    timeout: float = Field(30.0, gt=0)

    @field_validator("table_name")
    @classmethod
    def check_table_name(cls, v):
        """Only safe SQL identifiers may name the site table."""
        return sanitize_sql_identifier(v, "table_name")


class AppSettings(BaseModel):
    """
    Top-level ledger settings.

    Attributes:
        store: Database settings
        scan_page_size: Items per page during id allocation scans
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
        metrics_port: Port for the Prometheus endpoint, None to disable
    """

    store: StoreSettings = Field(default_factory=StoreSettings)
    scan_page_size: int = Field(100, gt=0, le=10000)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    metrics_port: int | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """
    Load settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: YAML file (defaults to env var SITELEDGER_CONFIG)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppSettings

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ValueError: If the YAML is not a mapping
        pydantic.ValidationError: If any value is invalid
    """
    environ = os.environ if environ is None else environ
    config_path = config_path or environ.get("SITELEDGER_CONFIG")

    data: dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path) as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        data = loaded

    store_data = dict(data.get("store") or {})
    for env_var, (section, field_name) in ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        if section == "store":
            store_data[field_name] = value
        else:
            data[field_name] = value

    data["store"] = store_data
    return AppSettings(**data)

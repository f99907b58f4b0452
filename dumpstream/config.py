"""
Configuration loading for dumpstream.
"""

import os
import re
from typing import Any

import yaml

from .exceptions import ConfigError
from .models import DEFAULT_CHARSET, DumpConfig


class ConfigLoader:
    """Loads configuration from YAML file and builds a DumpConfig."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')
    DEFAULT_EXECUTION_PATH = 'mysqldump'

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f)

        return self._expand_env(config or {})

    def _expand_env(self, value: Any) -> Any:
        """Substitute ``${VAR}`` in every string, dict keys included.

        Database names are dict keys under ``ignore_tables``, so they are
        expanded as well. Unset variables become empty strings.
        """
        if isinstance(value, str):
            return self.ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), ''), value)
        if isinstance(value, dict):
            return {self._expand_env(k): self._expand_env(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._expand_env(item) for item in value]
        return value

    def get_execution_path(self) -> str:
        """Get the mysqldump executable name or path."""
        return self.config.get('mysqldump') or self.DEFAULT_EXECUTION_PATH

    def get_instance(self, instance_name: str) -> dict[str, Any]:
        """Get database instance configuration."""
        instances = self.config.get('instances', {})
        if instance_name not in instances:
            raise ValueError(f"Instance '{instance_name}' not found in configuration")
        return instances[instance_name]

    def get_dump_settings(self) -> dict[str, Any]:
        """Get dump scope and formatting settings."""
        return self.config.get('dump', {})

    def get_output_settings(self) -> dict[str, Any]:
        """Get output settings."""
        return self.config.get('output', {})

    def get_logging_settings(self) -> dict[str, Any]:
        """Get logging settings."""
        return self.config.get('logging', {})

    def build_dump_config(self) -> DumpConfig:
        """Build a DumpConfig from the instance and dump sections.

        Raises:
            ValueError: If the dump refers to an unknown instance.
            ConfigError: If a required setting is missing or malformed.
        """
        settings = self.get_dump_settings()
        instance = self.get_instance(settings.get('instance', 'primary'))

        host = instance.get('host')
        if not host:
            raise ConfigError("Instance has no 'host'")
        address = f"{host}:{instance['port']}" if instance.get('port') else str(host)

        config = DumpConfig(
            address=address,
            user=str(instance.get('user', '')),
            password=str(instance.get('password', '')),
            where_clause=settings.get('where') or '',
            charset=settings.get('charset', DEFAULT_CHARSET) or '',
            capture_binlog_position=bool(settings.get('master_data', True)),
            binlog_position_includes_gtid=bool(settings.get('gtid', False)),
            hex_encode_binary=bool(settings.get('hex_blob', False)),
            schema_only=bool(settings.get('no_data', False)),
        )

        try:
            config.max_packet_mb = int(settings.get('max_allowed_packet_mb') or 0)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid max_allowed_packet_mb: {e}") from e

        config.add_databases(*settings.get('databases', []))

        tables = settings.get('tables')
        if tables:
            if 'database' not in tables:
                raise ConfigError("'tables' needs a 'database'")
            config.add_tables(tables['database'], *tables.get('names', []))

        for database, names in settings.get('ignore_tables', {}).items():
            config.add_ignore_tables(database, *names)

        return config

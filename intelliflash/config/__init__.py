"""
Configuration management for the IntelliFlash collector.
"""

import os
import yaml
import json
from typing import Optional, Dict, Any
import logging

# Initialize logger
LOG = logging.getLogger(__name__)


class Settings:
    """
    Configuration settings for the IntelliFlash collector.
    Supports loading from YAML or JSON, then environment variables.

    Collector keys (servers, data_metrics, ...) and writer keys
    (influxdb_url, prometheus_port, ...) share one flat namespace.
    """

    def __init__(self, config_file: Optional[str] = None, from_env: bool = True):
        """
        Initialize settings from a config file or environment variables.

        Args:
            config_file: Path to YAML or JSON configuration file
            from_env: Whether to load settings from environment variables
        """
        self.values: Dict[str, Any] = {}

        # Load configuration in order of precedence
        if config_file:
            self._load_from_file(config_file)

        if from_env:
            self._load_from_env()

    def _load_from_file(self, config_file: str) -> None:
        """Load settings from a YAML or JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the format is unsupported or the content is not a mapping
        """
        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(config_file, 'r', encoding='utf-8') as f:
            if config_file.lower().endswith(('.yaml', '.yml')):
                try:
                    config = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
            elif config_file.lower().endswith('.json'):
                config = json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {config_file}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")

        self.values.update(config)
        LOG.info(f"Loaded configuration from {config_file}")

    def _load_from_env(self) -> None:
        """Load settings from environment variables."""
        if os.getenv('INTELLIFLASH_SERVERS'):
            # Space-separated list like "array01 array02:8443"
            self.values['servers'] = os.getenv('INTELLIFLASH_SERVERS', '').split()

        env_map = {
            'INTELLIFLASH_USERNAME': 'username',
            'INTELLIFLASH_PASSWORD': 'password',
            'INFLUXDB_URL': 'influxdb_url',
            'INFLUXDB_DATABASE': 'influxdb_database',
            'INFLUXDB_TOKEN': 'influxdb_token',
            'TLS_CA': 'tls_ca',
        }
        for env_name, key in env_map.items():
            value = os.getenv(env_name)
            if value:
                self.values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.values)

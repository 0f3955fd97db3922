"""
Configuration loading for httpupload

The configuration is read once at startup into an immutable ``Config`` and
handed to the application factory. Any problem is fatal.
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any

import yaml

from .models import Config, LoggingConfig
from .utils import parse_listen_address

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config.yaml"
CONFIG_ENV_VAR = "HTTPUPLOAD_CONFIG"

REQUIRED_KEYS = ("listenport", "secret", "storedir", "uploadSubDir")


class ConfigurationError(Exception):
    """Raised when the configuration file is missing or malformed"""
    pass


def resolve_config_path(config_path: str = None) -> Path:
    """Pick the configuration file from argument, environment or default"""
    if not config_path:
        config_path = os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    return Path(config_path)


def load_config(config_path: str = None) -> Config:
    """
    Load configuration from a YAML file

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    path = resolve_config_path(config_path)
    logger.info(f"Reading configuration from {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Configuration file {path} cannot be read: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Configuration file {path} is invalid: {e}")

    return parse_config(data)


def parse_config(data: Any) -> Config:
    """
    Parse configuration data into Config object

    Raises:
        ConfigurationError: If a required key is missing or a value is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping")

    for key in REQUIRED_KEYS:
        value = data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(f"Missing required configuration key: {key}")
        if not isinstance(value, str):
            raise ConfigurationError(f"Configuration key {key} must be a string")

    try:
        parse_listen_address(data['listenport'])
    except ValueError as e:
        raise ConfigurationError(str(e))

    storedir = Path(data['storedir']).expanduser().resolve()

    return Config(
        listenport=data['listenport'],
        secret=data['secret'],
        storedir=str(storedir),
        upload_sub_dir=data['uploadSubDir'],
        logging=_parse_logging(data.get('logging') or {})
    )


def _parse_logging(logging_data: Dict[str, Any]) -> LoggingConfig:
    if not isinstance(logging_data, dict):
        raise ConfigurationError("Configuration section logging must be a mapping")

    level = str(logging_data.get('level', 'INFO')).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"Unknown log level: {level}")

    try:
        return LoggingConfig(
            json=bool(logging_data.get('json', False)),
            file=logging_data.get('file', '') or '',
            level=level,
            max_size_mb=int(logging_data.get('max_size_mb', 100)),
            backup_count=int(logging_data.get('backup_count', 5))
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid logging configuration: {e}")

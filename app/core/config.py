"""Configuration management"""
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from app.core.logging import get_logger
from app.models.config import AppConfig

load_dotenv()

logger = get_logger()


def expand_env_vars(value: str) -> str:
    """Expand environment variables in string. Supports ${VAR}, ${VAR:-default}, ${VAR:default}"""
    if not isinstance(value, str):
        return value

    pattern = r'\$\{([^}:]+)(?::?-([^}]*))?\}'
    return re.sub(pattern, lambda m: os.environ.get(m.group(1), m.group(2) or ''), value)


def expand_config_env_vars(config: Any) -> Any:
    """Recursively expand environment variables in config"""
    if isinstance(config, dict):
        return {k: expand_config_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [expand_config_env_vars(item) for item in config]
    elif isinstance(config, str):
        return expand_env_vars(config)
    return config


def str_to_bool(value: Any) -> bool:
    """Convert string representation of boolean to actual boolean"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def drop_empty_values(config: Any) -> Any:
    """Remove keys whose expanded value is an empty string so model defaults apply"""
    if isinstance(config, dict):
        return {k: drop_empty_values(v) for k, v in config.items() if v != ''}
    return config


def load_config(config_path: str = 'config.yaml') -> AppConfig:
    """Load and parse configuration from YAML file

    A missing file is not an error: the gateway then runs on model defaults,
    which is enough for a single default provider.
    """
    path = Path(config_path)
    if path.exists():
        with open(path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}
    else:
        logger.warning(f"Config file {config_path} not found, using defaults")
        raw_config = {}

    expanded_config = drop_empty_values(expand_config_env_vars(raw_config))
    expanded_config['verify_ssl'] = str_to_bool(expanded_config.get('verify_ssl', True))

    return AppConfig(**expanded_config)


@lru_cache
def get_config() -> AppConfig:
    """Get cached configuration instance"""
    config_path = os.environ.get('CONFIG_PATH', 'config.yaml')
    return load_config(config_path)

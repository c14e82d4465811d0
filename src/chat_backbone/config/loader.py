"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from collections import Counter
from pathlib import Path

import yaml

from ..errors import ConfigurationError
from .schema import BotConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> BotConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BotConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing
        ValidationError: If config doesn't match schema
        ConfigurationError: If cross-field validation fails
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)

    config_dict = yaml.safe_load(yaml_with_env) or {}

    config = BotConfig.model_validate(config_dict)

    validate_config(config)

    return config


def validate_config(config: BotConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ConfigurationError: If service names repeat, or a local service
            reference is used without a namespace
    """
    counts = Counter(service.name for service in config.services)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise ConfigurationError(f"Duplicate service names: {', '.join(duplicates)}")

    if config.namespace is None:
        local = [s.name for s in config.services if s.service.startswith(".")]
        if local:
            raise ConfigurationError(
                f"Services {', '.join(local)} use local references but no namespace is set"
            )

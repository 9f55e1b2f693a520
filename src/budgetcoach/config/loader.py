"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from budgetcoach.config.schema import CoachConfig

DEFAULT_CONFIG_PATH = Path.home() / ".budgetcoach" / "budgetcoach.yaml"

# Provider section -> environment variable holding its API key
API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class ConfigError(Exception):
    """Configuration loading or validation error."""


def apply_env_overrides(config: CoachConfig) -> CoachConfig:
    """Fill missing provider API keys from the environment.

    Keys written in the YAML file always win over the environment.

    Args:
        config: Parsed configuration

    Returns:
        The same configuration object, updated in place
    """
    for name, env_var in API_KEY_ENV_VARS.items():
        section = getattr(config.providers, name)
        if not section.api_key:
            section.api_key = os.environ.get(env_var) or None
    return config


def load_config(path: Optional[Path] = None) -> CoachConfig:
    """Load and validate budgetcoach configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return apply_env_overrides(CoachConfig())

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if config_data is None:
        return apply_env_overrides(CoachConfig())

    try:
        config = CoachConfig(**config_data)
    except (TypeError, ValidationError) as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e

    return apply_env_overrides(config)


def save_config(config: CoachConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()

    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

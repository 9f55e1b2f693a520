"""Configuration schema and loading."""

from budgetcoach.config.loader import ConfigError, load_config, save_config
from budgetcoach.config.schema import CoachConfig

__all__ = ["CoachConfig", "ConfigError", "load_config", "save_config"]

"""Configuration management"""

from .app_config import AccountConfig, AppConfig, CommandsConfig, GeneralConfig, StorageConfig
from .config_loader import ConfigError, ConfigLoader

__all__ = [
    "AccountConfig",
    "AppConfig",
    "CommandsConfig",
    "GeneralConfig",
    "StorageConfig",
    "ConfigError",
    "ConfigLoader",
]

"""Configuration loading and schema."""

from .loader import DEFAULT_CONFIG_PATH, initialize_config, load_config
from .schema import AppConfig, BackupConfig, ConnectionConfig, EventBusConfig, LoggingConfig, ScanConfig, parse_config

__all__ = [
    "AppConfig",
    "BackupConfig",
    "ConnectionConfig",
    "DEFAULT_CONFIG_PATH",
    "EventBusConfig",
    "LoggingConfig",
    "ScanConfig",
    "initialize_config",
    "load_config",
    "parse_config",
]

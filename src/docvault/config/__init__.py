"""
Configuration management for docvault.

This module handles loading, validating, and saving configuration settings.
"""

from docvault.config.settings import (
    DEFAULT_COLLECTIONS,
    BackupConfig,
    CollectionConfig,
    ConfigurationError,
    MongoConfig,
    Settings,
    load_config,
    save_config,
)

__all__ = [
    "Settings",
    "MongoConfig",
    "BackupConfig",
    "CollectionConfig",
    "DEFAULT_COLLECTIONS",
    "load_config",
    "save_config",
    "ConfigurationError",
]

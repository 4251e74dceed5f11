"""
Configuration settings management for docvault.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.docvault/config.yaml by default, with the
path overridable via the DOCVAULT_CONFIG environment variable.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".docvault"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Collections backed up when the config file does not list any. Order matters:
# role-like and identity-like collections come before the ones referencing them.
DEFAULT_COLLECTIONS = [
    "roles",
    "users",
    "allowedorigins",
    "blogs",
    "portfolios",
    "contactsubmissions",
    "helprequests",
    "resolutions",
    "valentineurls",
    "valentinereplies",
    "valentinevisits",
    "valentinecontestentries",
    "valentinecreditrequests",
]

# Credential given to imported users whose row carries none. Not a secret:
# it only satisfies the required field and forces a password reset.
DEFAULT_PLACEHOLDER_CREDENTIAL = "ImportedBackup1!"

# Keys double as Excel worksheet titles and must survive the title rules unchanged
MAX_COLLECTION_KEY_LENGTH = 31
FORBIDDEN_KEY_CHARACTERS = "\\/*?:[]"


@dataclass
class MongoConfig:
    """MongoDB connection settings."""

    url: str = "mongodb://localhost:27017"
    database: str = "app"
    server_selection_timeout_ms: int = 5000


@dataclass
class BackupConfig:
    """Backup and restore behaviour."""

    output_dir: str = "."
    identity_collection: str = "users"
    credential_field: str = "password"
    placeholder_credential: str = DEFAULT_PLACEHOLDER_CREDENTIAL


@dataclass
class CollectionConfig:
    """A single collection taking part in backups."""

    key: str
    # Fields the store requires on insert; rows missing them are skipped on import
    required_fields: list[str] = field(default_factory=list)


def _default_collections() -> list[CollectionConfig]:
    return [CollectionConfig(key=key) for key in DEFAULT_COLLECTIONS]


@dataclass
class Settings:
    """
    Complete docvault configuration settings.

    Settings are loaded from a YAML configuration file and can be overridden
    by environment variables prefixed with DOCVAULT_.

    Attributes:
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        mongodb: Connection settings for the document store.
        backup: Export/import behaviour, including the identity collection.
        collections: Ordered list of collections to back up and restore.
    """

    log_level: str = "INFO"

    mongodb: MongoConfig = field(default_factory=MongoConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    collections: list[CollectionConfig] = field(default_factory=_default_collections)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def collection_key_error(key: str) -> str | None:
    """
    Check a collection key against the naming rules.

    Keys must be non-empty, lowercase, free of whitespace, at most 31
    characters long and free of the characters Excel forbids in sheet titles.

    Returns:
        A description of the first broken rule, or None if the key is valid.
    """
    if not key:
        return "keys must not be empty"
    if key != key.lower():
        return "keys must be lowercase"
    if "".join(key.split()) != key:
        return "keys must not contain whitespace"
    if len(key) > MAX_COLLECTION_KEY_LENGTH:
        return f"keys must be at most {MAX_COLLECTION_KEY_LENGTH} characters long"
    if any(ch in FORBIDDEN_KEY_CHARACTERS for ch in key):
        return f"keys must not contain any of {FORBIDDEN_KEY_CHARACTERS}"
    return None


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from DOCVAULT_CONFIG environment variable if set,
    otherwise returns the default path (~/.docvault/config.yaml).
    """
    env_path = os.environ.get("DOCVAULT_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.

    Args:
        config_path: Optional path to configuration file. If not provided,
                    uses DOCVAULT_CONFIG environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_data = _settings_to_dict(settings)

    try:
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    general = data.get("docvault") or {}
    if "log_level" in general:
        settings.log_level = str(general["log_level"]).upper()

    mongodb = data.get("mongodb") or {}
    if "url" in mongodb:
        settings.mongodb.url = str(mongodb["url"])
    if "database" in mongodb:
        settings.mongodb.database = str(mongodb["database"])
    if "server_selection_timeout_ms" in mongodb:
        settings.mongodb.server_selection_timeout_ms = int(mongodb["server_selection_timeout_ms"])

    backup = data.get("backup") or {}
    if "output_dir" in backup:
        settings.backup.output_dir = str(backup["output_dir"])
    if "identity_collection" in backup:
        settings.backup.identity_collection = str(backup["identity_collection"])
    if "credential_field" in backup:
        settings.backup.credential_field = str(backup["credential_field"])
    if "placeholder_credential" in backup:
        settings.backup.placeholder_credential = str(backup["placeholder_credential"])

    if "collections" in data:
        settings.collections = _parse_collections(data["collections"])

    return settings


def _parse_collections(entries: Any) -> list[CollectionConfig]:
    """Parse the ordered collection list; entries are keys or mappings."""
    if not isinstance(entries, list):
        raise ConfigurationError("collections must be a list")

    collections = []
    for entry in entries:
        if isinstance(entry, str):
            collections.append(CollectionConfig(key=entry))
        elif isinstance(entry, dict) and "key" in entry:
            required = entry.get("required_fields") or []
            if not isinstance(required, list):
                raise ConfigurationError(
                    f"required_fields for collection {entry['key']!r} must be a list"
                )
            collections.append(
                CollectionConfig(
                    key=str(entry["key"]),
                    required_fields=[str(name) for name in required],
                )
            )
        else:
            raise ConfigurationError(f"Invalid collection entry: {entry!r}")
    return collections


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "DOCVAULT_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "DOCVAULT_MONGODB_URL": ("mongodb.url", str),
        "DOCVAULT_DATABASE": ("mongodb.database", str),
        "DOCVAULT_OUTPUT_DIR": ("backup.output_dir", str),
        "DOCVAULT_COLLECTIONS": (
            "collections",
            lambda x: [CollectionConfig(key=k.strip()) for k in x.split(",") if k.strip()],
        ),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if not settings.mongodb.url:
        raise ConfigurationError("mongodb.url must not be empty")
    if not settings.mongodb.database:
        raise ConfigurationError("mongodb.database must not be empty")
    if settings.mongodb.server_selection_timeout_ms < 1:
        raise ConfigurationError("server_selection_timeout_ms must be at least 1")

    seen: set[str] = set()
    for collection in settings.collections:
        key = collection.key
        problem = collection_key_error(key)
        if problem:
            raise ConfigurationError(f"Invalid collection key: {key!r} ({problem})")
        if key in seen:
            raise ConfigurationError(f"Duplicate collection key: {key}")
        seen.add(key)


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "docvault": {
            "log_level": settings.log_level,
        },
        "mongodb": {
            "url": settings.mongodb.url,
            "database": settings.mongodb.database,
            "server_selection_timeout_ms": settings.mongodb.server_selection_timeout_ms,
        },
        "backup": {
            "output_dir": settings.backup.output_dir,
            "identity_collection": settings.backup.identity_collection,
            "credential_field": settings.backup.credential_field,
            "placeholder_credential": settings.backup.placeholder_credential,
        },
        "collections": [
            {"key": c.key, "required_fields": list(c.required_fields)}
            if c.required_fields
            else c.key
            for c in settings.collections
        ],
    }

"""TOML configuration loader for tenant backups.

Configuration file lookup order:
1. ``config_path`` argument
2. ``{env_prefix}CONFIG`` environment variable (default ``TENANT_BACKUP_CONFIG``)
3. ``tenant-backup.toml`` in the current working directory

``[backup]`` keys can be overridden per machine without editing the file
(``TENANT_BACKUP_MYSQLDUMP_PATH``, ``TENANT_BACKUP_MYSQL_PATH``, ...); see
``BackupSettings``.
"""

import tomllib
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from tenant_backup.config.models import AppConfig, BackupSettings
from tenant_backup.errors import ConfigError

DEFAULT_ENV_PREFIX = "TENANT_BACKUP_"
DEFAULT_CONFIG_FILE = "tenant-backup.toml"


class ConfigLocation(BaseSettings):
    """Config file path taken from ``{env_prefix}CONFIG``."""

    model_config = SettingsConfigDict(
        env_prefix=DEFAULT_ENV_PREFIX, env_ignore_empty=True, extra="ignore"
    )

    config: Path | None = None


def resolve_config_path(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> Path:
    """Return the configuration file path that ``load_config`` would read."""
    if config_path is not None:
        return Path(config_path)
    env_path = ConfigLocation(_env_prefix=env_prefix).config
    if env_path is not None:
        return env_path
    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> AppConfig:
    """Load backup configuration from a TOML file.

    Args:
        config_path: Path to the TOML file (see module docstring for the
            lookup order when omitted).
        env_prefix: Prefix for environment variable overrides.

    Returns:
        AppConfig with storage, backup, central and tenant sections.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file is not valid TOML or fails validation.
    """
    path = resolve_config_path(config_path, env_prefix)

    if not path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {path}\n"
            f"Create {DEFAULT_CONFIG_FILE} or set {env_prefix}CONFIG."
        )

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    try:
        backup = BackupSettings(_env_prefix=env_prefix, **data.pop("backup", {}))
        return AppConfig(backup=backup, **data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid backup config in {path}: {e}") from e

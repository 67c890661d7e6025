"""Configuration management: TOML loading and config models.

Usage:
    >>> from tenant_backup.config import load_config, AppConfig
"""

from tenant_backup.config.loader import load_config, resolve_config_path
from tenant_backup.config.models import (
    AppConfig,
    BackupSettings,
    CentralConnection,
    StorageSettings,
    TenantConfig,
)

__all__ = [
    "load_config",
    "resolve_config_path",
    "AppConfig",
    "BackupSettings",
    "CentralConnection",
    "StorageSettings",
    "TenantConfig",
]

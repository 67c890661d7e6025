"""tenant-backup: Per-tenant MySQL backup and restore.

Dumps each tenant database with ``mysqldump`` when available or with an
in-process exporter otherwise, stores gzip archives in a storage backend
with a per-tenant catalog, and restores them destructively with a guard
against the central database.

Usage:
    from tenant_backup import BackupOrchestrator, RestoreOrchestrator, load_config
    from tenant_backup import BackupOptions, BackupMethod, build_services
"""

__version__ = "0.1.0"

# Models
from tenant_backup.models import (
    BackupKind,
    BackupMethod,
    BackupOptions,
    BackupRecord,
    DatabaseConnectionInfo,
    RestoreOptions,
    RestoreStats,
    Tenant,
)

# Errors
from tenant_backup.errors import (
    BackupFailed,
    ExportFailure,
    ProtectedDatabase,
    RestoreFailure,
    TenantBackupError,
    UnsupportedMethod,
)

# Config
from tenant_backup.config.loader import load_config
from tenant_backup.config.models import AppConfig

# Components
from tenant_backup.backup import (
    BackupOrchestrator,
    MetadataStore,
    RestoreOrchestrator,
    Retention,
)
from tenant_backup.detector import AvailableMethods, MethodDetector
from tenant_backup.factory import BackupServices, build_services
from tenant_backup.storage import LocalStorage, Storage

__all__ = [
    # Models
    "BackupKind",
    "BackupMethod",
    "BackupOptions",
    "BackupRecord",
    "DatabaseConnectionInfo",
    "RestoreOptions",
    "RestoreStats",
    "Tenant",
    # Errors
    "BackupFailed",
    "ExportFailure",
    "ProtectedDatabase",
    "RestoreFailure",
    "TenantBackupError",
    "UnsupportedMethod",
    # Config
    "load_config",
    "AppConfig",
    # Components
    "BackupOrchestrator",
    "MetadataStore",
    "RestoreOrchestrator",
    "Retention",
    "AvailableMethods",
    "MethodDetector",
    "BackupServices",
    "build_services",
    "LocalStorage",
    "Storage",
]

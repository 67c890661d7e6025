"""Pydantic models for tenants, connections, and backup records.

Usage:
    from tenant_backup.models import Tenant, BackupOptions, BackupMethod

    tenant = Tenant(id="acme", database="tenant_acme", domains=["acme.example.com"])
    options = BackupOptions(method=BackupMethod.NATIVE, compress=True)
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class BackupMethod(str, Enum):
    """Strategy used to produce (and later restore) a dump."""

    MYSQLDUMP = "mysqldump"
    NATIVE = "native"
    PHPMYADMIN = "phpmyadmin-style"
    MYSQL_CLIENT = "mysql-client"

    @property
    def is_native(self) -> bool:
        """True for the in-process exporters (no external binary needed)."""
        return self in (BackupMethod.NATIVE, BackupMethod.PHPMYADMIN)

    @property
    def can_export(self) -> bool:
        """``mysql-client`` only restores; every other method can dump."""
        return self is not BackupMethod.MYSQL_CLIENT


class BackupKind(str, Enum):
    """Whether a dump carries row data."""

    FULL = "full"
    STRUCTURE = "structure"


class Tenant(BaseModel):
    """An isolated customer unit with its own database."""

    id: str
    database: str
    domains: list[str] = Field(default_factory=list)

    @property
    def primary_domain(self) -> str | None:
        return self.domains[0] if self.domains else None


class DatabaseConnectionInfo(BaseModel):
    """Connection parameters for one tenant database.

    Resolved per operation through the tenant context switcher and never
    persisted.  The password is a ``SecretStr`` so it never shows up in
    ``repr()`` or log output.
    """

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 3306
    database: str
    username: str = "root"
    password: SecretStr = SecretStr("")
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"


class BackupRecord(BaseModel):
    """Catalog entry for one stored backup.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    filename: str
    path: str                       # storage path of the backup object
    size: int                       # bytes, as reported by storage
    kind: BackupKind
    method: BackupMethod
    compressed: bool
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Legacy catalog entries may carry naive timestamps; treat them as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BackupOptions(BaseModel):
    """Options for ``BackupOrchestrator.create_backup``."""

    method: BackupMethod | None = None   # None -> detector recommendation
    compress: bool = True
    structure_only: bool = False


class RestoreOptions(BaseModel):
    """Options for ``RestoreOrchestrator.restore``."""

    safety_backup: bool = False   # native backup of the current state before dropping


class RestoreStats(BaseModel):
    """Post-restore statistics collected via schema introspection."""

    tables_count: int = 0
    records_count: int = 0        # approximate (information_schema.table_rows)
    statements_executed: int = 0
    method: BackupMethod
    safety_backup: BackupRecord | None = None


class BatchResult(BaseModel):
    """Outcome of ``BackupOrchestrator.backup_many``."""

    records: dict[str, BackupRecord] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

"""Pydantic models for the backup configuration file.

``BackupSettings`` is a pydantic-settings model: every ``[backup]`` key can
be overridden per machine with an environment variable named
``{env_prefix}{KEY}`` (e.g. ``TENANT_BACKUP_MYSQLDUMP_PATH``), and the
environment wins over the file.
"""

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from tenant_backup.errors import TenantNotFoundError
from tenant_backup.models import BackupMethod, DatabaseConnectionInfo, Tenant


# ============================================================================
# Configuration Models
# ============================================================================


class StorageSettings(BaseModel):
    """Where backup objects are kept (local disk backend)."""

    root: Path = Path("storage/tenant-backups")


class BackupSettings(BaseSettings):
    """Backup engine settings from ``[backup]`` plus environment overrides.

    Pass ``_env_prefix`` to read overrides under another prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANT_BACKUP_", env_ignore_empty=True, extra="ignore"
    )

    temp_dir: Path | None = None                 # None -> system temp dir
    compress_by_default: bool = True
    default_method: BackupMethod | None = None   # None -> detector recommendation
    mysqldump_path: str = "mysqldump"
    mysql_path: str = "mysql"
    process_timeout: float = 3600.0              # seconds, dump/restore child processes
    probe_timeout: float = 10.0                  # seconds, ``--version`` probes
    batch_size: int = Field(default=1000, gt=0)  # rows fetched per round trip
    protected_databases: list[str] = Field(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # environment first: it overrides values read from the TOML file
        return env_settings, init_settings


class CentralConnection(BaseModel):
    """The application's own (central) database connection from ``[central]``.

    Tenant connections reuse host, port and credentials unless a tenant
    overrides them.  ``database`` is always protected from restore.
    """

    host: str = "127.0.0.1"
    port: int = 3306
    database: str = "central"
    username: str = "root"
    password: SecretStr = SecretStr("")
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"


class TenantConfig(BaseModel):
    """One ``[tenants.<id>]`` table."""

    database: str
    domains: list[str] = Field(default_factory=list)
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: SecretStr | None = None


class AppConfig(BaseModel):
    """Complete configuration from ``tenant-backup.toml``."""

    storage: StorageSettings = Field(default_factory=StorageSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    central: CentralConnection = Field(default_factory=CentralConnection)
    tenants: dict[str, TenantConfig] = Field(default_factory=dict)

    @property
    def protected_databases(self) -> frozenset[str]:
        """Lower-cased names no restore may ever target."""
        names = {self.central.database, *self.backup.protected_databases}
        return frozenset(name.lower() for name in names if name)

    def get_tenant(self, tenant_id: str) -> Tenant:
        """Build a ``Tenant`` from its config entry.

        Raises:
            TenantNotFoundError: If ``tenant_id`` is not configured.
        """
        entry = self.tenants.get(tenant_id)
        if entry is None:
            available = ", ".join(sorted(self.tenants)) or "(none)"
            raise TenantNotFoundError(
                f"Tenant '{tenant_id}' not found. Available tenants: {available}"
            )
        return Tenant(id=tenant_id, database=entry.database, domains=entry.domains)

    def all_tenants(self) -> list[Tenant]:
        return [self.get_tenant(tenant_id) for tenant_id in sorted(self.tenants)]

    def connection_for(self, tenant: Tenant) -> DatabaseConnectionInfo:
        """Tenant connection: central defaults plus per-tenant overrides."""
        entry = self.tenants.get(tenant.id)
        central = self.central
        return DatabaseConnectionInfo(
            host=(entry and entry.host) or central.host,
            port=(entry and entry.port) or central.port,
            database=tenant.database,
            username=(entry and entry.username) or central.username,
            password=(entry and entry.password) or central.password,
            charset=central.charset,
            collation=central.collation,
        )


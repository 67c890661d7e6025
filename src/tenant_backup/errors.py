"""Exception hierarchy for tenant backup and restore.

Every error raised by the package derives from ``TenantBackupError`` so
callers (and the CLI) can catch a single type.  Errors that wrap another
failure are raised with ``raise ... from exc`` so the originating cause is
always available as ``__cause__``.

Usage:
    from tenant_backup.errors import BackupFailed, ProtectedDatabase

    try:
        record = await orchestrator.create_backup(tenant)
    except BackupFailed as e:
        print(f"Backup failed: {e} (cause: {e.__cause__!r})")
"""


class TenantBackupError(Exception):
    """Base class for all tenant backup errors."""

    pass


class ConfigError(TenantBackupError):
    """Raised when the backup configuration is missing or invalid."""

    pass


class TenantNotFoundError(TenantBackupError):
    """Raised when a tenant id is not present in the configuration."""

    pass


class UnsupportedMethod(TenantBackupError):
    """Raised when the requested backup/restore method is not available.

    Raised before any side effect (no temp file, no catalog entry, no
    destructive database statement).
    """

    def __init__(self, method: str, available: list[str] | None = None):
        self.method = method
        self.available = available or []
        message = f"Backup method '{method}' is not available."
        if self.available:
            message += f" Available methods: {', '.join(self.available)}"
        super().__init__(message)


class ExportFailure(TenantBackupError):
    """Raised when an exporter fails mid-dump.

    Attributes:
        stderr: Captured error stream of the external tool, when any.
    """

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"{message}: {stderr.strip()}" if stderr.strip() else message)


class CompressionError(TenantBackupError):
    """Raised when a backup file cannot be gzip-encoded."""

    pass


class DecompressionError(TenantBackupError):
    """Raised when a backup file is not a valid gzip stream."""

    pass


class ProtectedDatabase(TenantBackupError):
    """Raised when a restore targets a protected (central) database."""

    def __init__(self, database: str):
        self.database = database
        super().__init__(
            f"Refusing to restore into protected database '{database}'"
        )


class RestoreFailure(TenantBackupError):
    """Raised when loading a dump fails after the database was recreated.

    The target database is left empty or partially populated.  There is
    no automatic rollback: retry from a known-good backup.
    """

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"{message}: {stderr.strip()}" if stderr.strip() else message)


class StorageError(TenantBackupError):
    """Raised when a storage backend read or write fails."""

    pass


class BackupFailed(TenantBackupError):
    """Raised when ``create_backup`` aborts; wraps the underlying cause."""

    def __init__(self, tenant_id: str, cause: BaseException):
        self.tenant_id = tenant_id
        super().__init__(f"Backup of tenant '{tenant_id}' failed: {cause}")


class ProcessTimeoutError(TenantBackupError):
    """Raised when an external process exceeds its timeout."""

    def __init__(self, argv0: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"'{argv0}' did not finish within {timeout:g}s")


class BackupNotFoundError(TenantBackupError):
    """Raised when a requested backup is neither cataloged nor stored."""

    pass

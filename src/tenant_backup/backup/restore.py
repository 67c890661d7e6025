"""Destructive restore of a tenant database from a stored backup.

Order of operations:

1. Resolve the tenant connection (scoped tenant context).
2. Refuse protected targets (``ProtectedDatabase``), before any download.
3. Refuse backups whose restore tool is missing (``UnsupportedMethod``).
4. Download to a unique temp file; decompress when the record says so.
5. Optional safety backup of the current database (native method).
6. Drop and recreate the database empty.
7. Load: native dumps are replayed statement by statement on one
   session; ``mysqldump`` dumps are piped into the ``mysql`` client.
8. Collect table and row counts.

Steps 6-8 are not atomic.  A failure there raises ``RestoreFailure`` and
leaves the database empty or partially loaded; recover by restoring a
known-good backup (the safety backup, if one was taken).

Usage:
    from tenant_backup.backup import RestoreOrchestrator

    stats = await restorer.restore(tenant, record)
    stats = await restorer.restore_latest(tenant, RestoreOptions(safety_backup=True))
"""

import logging
from pathlib import Path

from tenant_backup import compression
from tenant_backup.adapters.base import (
    ConnectorFactory,
    DatabaseConnector,
    TenantContextSwitcher,
)
from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.naming import parse_filename, tenant_prefix
from tenant_backup.backup.orchestrator import BackupOrchestrator, make_temp_file
from tenant_backup.config.models import BackupSettings
from tenant_backup.detector import AvailableMethods
from tenant_backup.errors import (
    BackupNotFoundError,
    ProtectedDatabase,
    RestoreFailure,
    TenantBackupError,
    UnsupportedMethod,
)
from tenant_backup.exporters.external import MysqlClientRestorer
from tenant_backup.models import (
    BackupMethod,
    BackupOptions,
    BackupRecord,
    DatabaseConnectionInfo,
    RestoreOptions,
    RestoreStats,
    Tenant,
)
from tenant_backup.process import ProcessRunner, run_process
from tenant_backup.sql import split_statements
from tenant_backup.storage import Storage

logger = logging.getLogger(__name__)


def is_protected(database: str, protected: frozenset[str]) -> bool:
    return database.lower() in protected


async def replay_file(connector: DatabaseConnector, path: Path) -> int:
    """Execute every statement of a SQL file on one session.

    Returns:
        Number of statements executed.
    """
    with open(path, "r", encoding="utf-8", newline="") as sql_file:
        return await connector.execute_script(split_statements(sql_file))


class RestoreOrchestrator:
    """Restores tenant databases from cataloged backups.

    Args:
        storage: Backend holding backup objects.
        context: Tenant context switcher resolving connection info.
        connector_factory: Builds a ``DatabaseConnector`` for the tenant.
        available: Detected methods (``mysql-client`` gates external restore).
        settings: Backup settings (temp dir, client path, timeouts).
        protected_databases: Lower-cased database names never restored into.
        backups: Orchestrator used for the optional safety backup.
        catalog: Backup catalog (defaults to the one ``backups`` uses).
        runner: Process runner for the ``mysql`` client.
    """

    def __init__(
        self,
        storage: Storage,
        context: TenantContextSwitcher,
        connector_factory: ConnectorFactory,
        available: AvailableMethods,
        settings: BackupSettings,
        protected_databases: frozenset[str],
        backups: BackupOrchestrator,
        catalog: MetadataStore | None = None,
        runner: ProcessRunner = run_process,
    ) -> None:
        self._storage = storage
        self._context = context
        self._connector_factory = connector_factory
        self._available = available
        self._settings = settings
        self._protected = frozenset(name.lower() for name in protected_databases)
        self._backups = backups
        self._catalog = catalog or backups.catalog
        self._runner = runner

    # ------------------------------------------------------------------
    # Record lookup
    # ------------------------------------------------------------------

    def find_backup(self, tenant: Tenant, filename: str) -> BackupRecord:
        """Look up a backup by filename.

        Falls back to the stored object when the catalog has no entry
        (kind, method and timestamp are read from the filename).

        Raises:
            BackupNotFoundError: If neither a record nor an object exists.
        """
        record = self._catalog.find(tenant, filename)
        if record is not None:
            return record

        path = f"{tenant_prefix(tenant)}/{filename}"
        parsed = parse_filename(filename)
        if parsed is None or not self._storage.exists(path):
            raise BackupNotFoundError(
                f"No backup named '{filename}' for tenant '{tenant.id}'"
            )
        logger.warning("Backup %s is not cataloged; using the stored object", filename)
        return BackupRecord(
            filename=filename,
            path=path,
            size=self._storage.size(path),
            kind=parsed.kind,
            method=parsed.method,
            compressed=parsed.compressed,
            created_at=parsed.created_at or self._storage.last_modified(path),
        )

    def latest_backup(self, tenant: Tenant) -> BackupRecord:
        """Newest cataloged backup of ``tenant``.

        Raises:
            BackupNotFoundError: If the tenant has no backups.
        """
        records = self._catalog.list(tenant)
        if not records:
            raise BackupNotFoundError(f"Tenant '{tenant.id}' has no backups")
        return records[0]

    async def restore_latest(
        self, tenant: Tenant, options: RestoreOptions | None = None
    ) -> RestoreStats:
        """Restore the newest cataloged backup of ``tenant``.

        Raises:
            BackupNotFoundError: If the tenant has no backups.
        """
        return await self.restore(tenant, self.latest_backup(tenant), options)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore(
        self,
        tenant: Tenant,
        record: BackupRecord,
        options: RestoreOptions | None = None,
    ) -> RestoreStats:
        """Replace the tenant database with the contents of ``record``.

        Raises:
            ProtectedDatabase: Target is the central (or another protected) database.
            UnsupportedMethod: The backup needs the ``mysql`` client and it is missing.
            StorageError: The backup object cannot be downloaded.
            DecompressionError: The backup object is not valid gzip.
            BackupFailed: The requested safety backup failed.
            RestoreFailure: Recreating or loading the database failed.
        """
        options = options or RestoreOptions()

        async def _run(info: DatabaseConnectionInfo) -> RestoreStats:
            return await self._restore_with_connection(tenant, info, record, options)

        return await self._context.run(tenant, _run)

    def _check_restorable(self, info: DatabaseConnectionInfo, record: BackupRecord) -> None:
        if is_protected(info.database, self._protected):
            raise ProtectedDatabase(info.database)
        if not record.method.is_native and BackupMethod.MYSQL_CLIENT not in self._available:
            raise UnsupportedMethod(BackupMethod.MYSQL_CLIENT.value, self._available.names())

    async def _restore_with_connection(
        self,
        tenant: Tenant,
        info: DatabaseConnectionInfo,
        record: BackupRecord,
        options: RestoreOptions,
    ) -> RestoreStats:
        self._check_restorable(info, record)

        logger.info("Restoring tenant %s from %s", tenant.id, record.filename)
        safety: BackupRecord | None = None
        temp_path = make_temp_file(self._settings.temp_dir, prefix=f"restore-{tenant.id}-")
        try:
            self._storage.get_file(record.path, temp_path)
            if record.compressed:
                compression.decode(temp_path)

            if options.safety_backup:
                safety = await self._backups.backup_with_connection(
                    tenant, info, BackupMethod.NATIVE, BackupOptions(method=BackupMethod.NATIVE)
                )
                logger.info("Safety backup %s taken before restore", safety.filename)

            stats = await self._load(info, record, temp_path)
        finally:
            temp_path.unlink(missing_ok=True)

        if safety is not None:
            stats = stats.model_copy(update={"safety_backup": safety})
        logger.info(
            "Restored tenant %s: %d tables, ~%d rows",
            tenant.id,
            stats.tables_count,
            stats.records_count,
        )
        return stats

    async def _load(
        self, info: DatabaseConnectionInfo, record: BackupRecord, sql_path: Path
    ) -> RestoreStats:
        connector = self._connector_factory(info)
        try:
            await connector.recreate_database(info.database, info.charset, info.collation)

            executed = 0
            if record.method.is_native:
                executed = await replay_file(connector, sql_path)
                logger.debug("Replayed %d statements into %s", executed, info.database)
            else:
                restorer = MysqlClientRestorer(self._settings, self._runner)
                await restorer.restore(info, sql_path)

            tables, rows = await connector.table_stats()
        except TenantBackupError:
            raise
        except Exception as e:
            logger.error("Restore of %s failed: %s", info.database, e)
            raise RestoreFailure(
                f"Restore of '{info.database}' failed; the database may be empty "
                f"or partially loaded: {e}"
            ) from e
        finally:
            await connector.close()

        return RestoreStats(
            tables_count=tables,
            records_count=rows,
            statements_executed=executed,
            method=record.method,
        )

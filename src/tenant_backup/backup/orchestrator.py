"""Backup orchestration.

``BackupOrchestrator.create_backup`` runs the whole backup of one tenant:
method selection, tenant context, dump to a local temporary file,
optional gzip, upload and catalog append.  Any failure after method
validation aborts the backup, removes the temporary file and surfaces as
``BackupFailed`` with the original error as ``__cause__``; no catalog
entry is written for a failed backup.

Usage:
    from tenant_backup.backup import BackupOrchestrator
    from tenant_backup.models import BackupOptions, BackupMethod

    record = await orchestrator.create_backup(
        tenant, BackupOptions(method=BackupMethod.NATIVE, compress=True)
    )
    batch = await orchestrator.backup_many(tenants)
"""

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from tenant_backup import compression
from tenant_backup.adapters.base import ConnectorFactory, TenantContextSwitcher
from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.naming import build_filename, tenant_prefix
from tenant_backup.config.models import BackupSettings
from tenant_backup.detector import AvailableMethods
from tenant_backup.errors import BackupFailed, TenantBackupError, UnsupportedMethod
from tenant_backup.exporters.external import MysqldumpExporter
from tenant_backup.exporters.native import NativeSqlExporter, dialect_for
from tenant_backup.models import (
    BackupKind,
    BackupMethod,
    BackupOptions,
    BackupRecord,
    BatchResult,
    DatabaseConnectionInfo,
    Tenant,
)
from tenant_backup.process import ProcessRunner, run_process
from tenant_backup.storage import Storage

logger = logging.getLogger(__name__)


def make_temp_file(temp_dir: Path | None, prefix: str, suffix: str = ".sql") -> Path:
    """Create a unique, empty local temp file and return its path."""
    if temp_dir is not None:
        temp_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=temp_dir)
    os.close(fd)
    return Path(name)


class BackupOrchestrator:
    """Creates tenant backups and records them in the catalog.

    Args:
        storage: Backend receiving backup objects.
        context: Tenant context switcher resolving connection info.
        connector_factory: Builds a ``DatabaseConnector`` for native exports.
        available: Detected backup methods.
        settings: Backup settings (temp dir, timeouts, batch size).
        catalog: Backup catalog (defaults to one on ``storage``).
        runner: Process runner for ``mysqldump``.
    """

    def __init__(
        self,
        storage: Storage,
        context: TenantContextSwitcher,
        connector_factory: ConnectorFactory,
        available: AvailableMethods,
        settings: BackupSettings,
        catalog: MetadataStore | None = None,
        runner: ProcessRunner = run_process,
    ) -> None:
        self._storage = storage
        self._context = context
        self._connector_factory = connector_factory
        self._available = available
        self._settings = settings
        self._catalog = catalog or MetadataStore(storage)
        self._runner = runner

    @property
    def catalog(self) -> MetadataStore:
        return self._catalog

    def resolve_method(self, requested: BackupMethod | None) -> BackupMethod:
        """Pick the export method and check it can run here.

        Raises:
            UnsupportedMethod: If the method is unavailable or cannot export.
        """
        method = requested or self._settings.default_method or self._available.recommended()
        if not method.can_export or method not in self._available:
            raise UnsupportedMethod(
                method.value,
                [m for m in self._available.names() if BackupMethod(m).can_export],
            )
        return method

    async def create_backup(
        self, tenant: Tenant, options: BackupOptions | None = None
    ) -> BackupRecord:
        """Back up one tenant database.

        Args:
            tenant: Tenant to back up.
            options: Method, compression and structure-only flags.

        Returns:
            The cataloged ``BackupRecord``.

        Raises:
            UnsupportedMethod: Before any side effect, if the method cannot run.
            BackupFailed: If any later step fails, including entering the
                tenant context; wraps the cause.
        """
        options = options or BackupOptions()
        method = self.resolve_method(options.method)

        async def _run(info: DatabaseConnectionInfo) -> BackupRecord:
            return await self.backup_with_connection(tenant, info, method, options)

        try:
            return await self._context.run(tenant, _run)
        except BackupFailed:
            raise
        except Exception as e:
            logger.error("Tenant context for %s failed: %s", tenant.id, e)
            raise BackupFailed(tenant.id, e) from e

    async def backup_with_connection(
        self,
        tenant: Tenant,
        info: DatabaseConnectionInfo,
        method: BackupMethod,
        options: BackupOptions,
    ) -> BackupRecord:
        """Back up using already-resolved connection info.

        Used inside an active tenant context (``create_backup`` and the
        restore safety backup).

        Raises:
            BackupFailed: If any step fails; wraps the cause.
        """
        kind = BackupKind.STRUCTURE if options.structure_only else BackupKind.FULL
        moment = datetime.now(timezone.utc)
        filename = build_filename(tenant, kind, method, options.compress, moment)
        object_path = f"{tenant_prefix(tenant)}/{filename}"

        logger.info("Backing up tenant %s (%s, %s)", tenant.id, method.value, kind.value)
        temp_path: Path | None = None
        try:
            temp_path = make_temp_file(self._settings.temp_dir, prefix=f"backup-{tenant.id}-")
            await self._export(method, info, temp_path, options.structure_only)
            if options.compress:
                compression.encode(temp_path)

            self._storage.make_directory(tenant_prefix(tenant))
            self._storage.put_file(object_path, temp_path)
            record = self._record(
                tenant,
                BackupRecord(
                    filename=filename,
                    path=object_path,
                    size=0,
                    kind=kind,
                    method=method,
                    compressed=options.compress,
                    created_at=moment,
                ),
            )
        except Exception as e:
            logger.error("Backup of tenant %s failed: %s", tenant.id, e)
            raise BackupFailed(tenant.id, e) from e
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)

        logger.info("Backup %s stored (%d bytes)", filename, record.size)
        return record

    def _record(self, tenant: Tenant, pending: BackupRecord) -> BackupRecord:
        """Size and catalog an uploaded object, removing it on failure."""
        try:
            record = pending.model_copy(
                update={"size": self._storage.size(pending.path)}
            )
            self._catalog.append(tenant, record)
        except Exception:
            # an object nobody can find in the catalog is garbage
            self._storage.delete(pending.path)
            raise
        return record

    async def _export(
        self,
        method: BackupMethod,
        info: DatabaseConnectionInfo,
        output_path: Path,
        structure_only: bool,
    ) -> None:
        if method is BackupMethod.MYSQLDUMP:
            exporter = MysqldumpExporter(self._settings, self._runner)
            await exporter.export(info, output_path, structure_only)
            return

        connector = self._connector_factory(info)
        try:
            exporter = NativeSqlExporter(
                connector, dialect_for(method), batch_size=self._settings.batch_size
            )
            await exporter.export(info, output_path, structure_only)
        finally:
            await connector.close()

    async def backup_many(
        self, tenants: list[Tenant], options: BackupOptions | None = None
    ) -> BatchResult:
        """Back up tenants one after another.

        A failing tenant is recorded in ``BatchResult.errors`` and the batch
        moves on to the next tenant.
        """
        result = BatchResult()
        for tenant in tenants:
            try:
                result.records[tenant.id] = await self.create_backup(tenant, options)
            except TenantBackupError as e:
                result.errors[tenant.id] = str(e)

        logger.info(
            "Batch backup finished: %d succeeded, %d failed",
            len(result.records),
            len(result.errors),
        )
        return result

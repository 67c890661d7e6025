"""Service wiring from configuration.

Builds the storage backend, tenant context, connector factory, method
detection and orchestrators from a loaded ``AppConfig``.  Nothing is
cached at module level: every call to ``build_services`` probes the
binaries again and returns fresh objects.

Usage:
    from tenant_backup.config import load_config
    from tenant_backup.factory import build_services

    services = await build_services(load_config())
    record = await services.backups.create_backup(services.config.get_tenant("acme"))
"""

from dataclasses import dataclass

from tenant_backup.adapters.base import ConnectorFactory, TenantContextSwitcher
from tenant_backup.adapters.context import ConfigTenantContext
from tenant_backup.adapters.mysql import MySQLConnector
from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.orchestrator import BackupOrchestrator
from tenant_backup.backup.restore import RestoreOrchestrator
from tenant_backup.backup.retention import Retention
from tenant_backup.config.models import AppConfig
from tenant_backup.detector import AvailableMethods, MethodDetector
from tenant_backup.process import ProcessRunner, run_process
from tenant_backup.storage import LocalStorage, Storage


@dataclass
class BackupServices:
    """Everything the CLI needs for one invocation."""

    config: AppConfig
    storage: Storage
    context: TenantContextSwitcher
    catalog: MetadataStore
    available: AvailableMethods
    backups: BackupOrchestrator
    restores: RestoreOrchestrator
    retention: Retention


async def build_services(
    config: AppConfig,
    *,
    storage: Storage | None = None,
    context: TenantContextSwitcher | None = None,
    connector_factory: ConnectorFactory = MySQLConnector,
    runner: ProcessRunner = run_process,
    available: AvailableMethods | None = None,
) -> BackupServices:
    """Wire the backup services for ``config``.

    Args:
        config: Loaded application configuration.
        storage: Storage backend (defaults to ``LocalStorage`` at
            ``config.storage.root``).
        context: Tenant context switcher (defaults to ``ConfigTenantContext``).
        connector_factory: Builds database connectors (defaults to
            ``MySQLConnector``).
        runner: Process runner for the external binaries.
        available: Pre-computed method set; probed when ``None``.
    """
    storage = storage or LocalStorage(config.storage.root)
    context = context or ConfigTenantContext(config)
    if available is None:
        available = await MethodDetector(config.backup, runner).detect()

    catalog = MetadataStore(storage)
    backups = BackupOrchestrator(
        storage,
        context,
        connector_factory,
        available,
        config.backup,
        catalog=catalog,
        runner=runner,
    )
    restores = RestoreOrchestrator(
        storage,
        context,
        connector_factory,
        available,
        config.backup,
        protected_databases=config.protected_databases,
        backups=backups,
        catalog=catalog,
        runner=runner,
    )
    return BackupServices(
        config=config,
        storage=storage,
        context=context,
        catalog=catalog,
        available=available,
        backups=backups,
        restores=restores,
        retention=Retention(storage, catalog),
    )

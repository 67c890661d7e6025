"""Backup retention.

Two policies, both deleting a backup object together with its catalog
record:

- ``cleanup_old_backups``: age-based, by the object's last-modified time.
- ``keep_latest_backups``: keep the newest N catalog records per tenant.

Usage:
    from tenant_backup.backup import Retention

    retention = Retention(storage, catalog)
    deleted = await retention.cleanup_old_backups(tenants, days=30)
    deleted = await retention.keep_latest_backups(tenants, keep=7)
"""

import logging
from datetime import datetime, timedelta, timezone

from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.naming import parse_filename, tenant_prefix
from tenant_backup.models import Tenant
from tenant_backup.storage import Storage

logger = logging.getLogger(__name__)


class Retention:
    """Applies retention policies to tenant backups.

    Args:
        storage: Backend holding backup objects.
        catalog: Backup catalog kept in sync with deletions.
    """

    def __init__(self, storage: Storage, catalog: MetadataStore | None = None) -> None:
        self._storage = storage
        self._catalog = catalog or MetadataStore(storage)

    def _delete(self, tenant: Tenant, path: str, filename: str) -> None:
        self._storage.delete(path)
        self._catalog.remove(tenant, filename)
        logger.info("Deleted backup %s of tenant %s", filename, tenant.id)

    async def cleanup_old_backups(
        self,
        tenants: list[Tenant],
        days: int,
        now: datetime | None = None,
    ) -> int:
        """Delete backups last modified more than ``days`` days before ``now``.

        Only backup objects (files whose names parse as backup filenames)
        are considered; catalog files are never touched directly.

        Args:
            tenants: Tenants to clean up.
            days: Age threshold in days.
            now: Reference time (defaults to now, UTC).

        Returns:
            Number of deleted backups.

        Raises:
            ValueError: If ``days`` is negative.
        """
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)

        deleted = 0
        for tenant in tenants:
            for path in self._storage.files(tenant_prefix(tenant)):
                filename = path.rsplit("/", 1)[-1]
                if parse_filename(filename) is None:
                    continue
                if self._storage.last_modified(path) < cutoff:
                    self._delete(tenant, path, filename)
                    deleted += 1

        logger.info("Removed %d backups older than %d days", deleted, days)
        return deleted

    async def keep_latest_backups(self, tenants: list[Tenant], keep: int) -> int:
        """Keep the newest ``keep`` cataloged backups per tenant.

        Returns:
            Number of deleted backups.

        Raises:
            ValueError: If ``keep`` is negative.
        """
        if keep < 0:
            raise ValueError(f"keep must be >= 0, got {keep}")

        deleted = 0
        for tenant in tenants:
            for record in self._catalog.list(tenant)[keep:]:
                self._delete(tenant, record.path, record.filename)
                deleted += 1

        logger.info("Removed %d backups beyond the newest %d per tenant", deleted, keep)
        return deleted

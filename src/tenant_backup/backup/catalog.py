"""Per-tenant backup catalog kept in the storage backend.

Each backup gets its own record file, written exactly once::

    tenants/{key}/backups/metadata/{filename}.json

Listing merges all record files (plus a legacy ``metadata.json`` array,
if one exists) on read.  Nothing is ever read, modified and written back
on the append path, so concurrent backups of the same tenant cannot lose
each other's entries.

Usage:
    from tenant_backup.backup.catalog import MetadataStore

    catalog = MetadataStore(storage)
    catalog.append(tenant, record)
    for record in catalog.list(tenant):
        print(record.filename, record.created_at)
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from tenant_backup.backup.naming import tenant_prefix
from tenant_backup.errors import StorageError
from tenant_backup.models import BackupRecord, Tenant
from tenant_backup.storage import Storage

logger = logging.getLogger(__name__)

RECORD_DIR = "metadata"
RECORD_SUFFIX = ".json"
LEGACY_CATALOG = "metadata.json"


def _from_legacy(entry: dict[str, Any]) -> dict[str, Any]:
    # Legacy array entries name the kind "type"
    if "kind" not in entry and "type" in entry:
        entry = {**entry, "kind": entry["type"]}
    return entry


class MetadataStore:
    """Backup catalog stored next to the backup objects.

    Args:
        storage: Storage backend holding both objects and records.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def record_path(self, tenant: Tenant, filename: str) -> str:
        return f"{tenant_prefix(tenant)}/{RECORD_DIR}/{filename}{RECORD_SUFFIX}"

    def append(self, tenant: Tenant, record: BackupRecord) -> None:
        """Write the record file for ``record``.

        Raises:
            StorageError: If the record cannot be written.
        """
        path = self.record_path(tenant, record.filename)
        self._storage.put(path, record.model_dump_json(indent=2).encode("utf-8"))
        logger.debug("Cataloged %s for tenant %s", record.filename, tenant.id)

    def find(self, tenant: Tenant, filename: str) -> BackupRecord | None:
        for record in self.list(tenant):
            if record.filename == filename:
                return record
        return None

    def remove(self, tenant: Tenant, filename: str) -> None:
        """Delete the catalog entry for ``filename``.

        Also drops a matching entry from the legacy array, when present.
        """
        self._storage.delete(self.record_path(tenant, filename))

        legacy_path = f"{tenant_prefix(tenant)}/{LEGACY_CATALOG}"
        entries = self._read_legacy(legacy_path)
        kept = [e for e in entries if e.get("filename") != filename]
        if len(kept) != len(entries):
            self._storage.put(legacy_path, json.dumps(kept, indent=2).encode("utf-8"))

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _read_legacy(self, path: str) -> list[dict[str, Any]]:
        if not self._storage.exists(path):
            return []
        try:
            data = json.loads(self._storage.get(path))
        except (StorageError, ValueError) as e:
            logger.warning("Skipping unreadable legacy catalog %s: %s", path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Skipping legacy catalog %s: not a JSON array", path)
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _read_record(self, path: str) -> BackupRecord | None:
        try:
            return BackupRecord.model_validate_json(self._storage.get(path))
        except (StorageError, ValidationError) as e:
            logger.warning("Skipping unreadable catalog record %s: %s", path, e)
            return None

    def list(self, tenant: Tenant) -> list[BackupRecord]:
        """All records for ``tenant``, newest first.  Empty if none."""
        prefix = tenant_prefix(tenant)
        records: dict[str, BackupRecord] = {}

        for entry in self._read_legacy(f"{prefix}/{LEGACY_CATALOG}"):
            try:
                record = BackupRecord.model_validate(_from_legacy(entry))
            except ValidationError as e:
                logger.warning("Skipping invalid legacy catalog entry: %s", e)
                continue
            records[record.filename] = record

        for path in self._storage.files(f"{prefix}/{RECORD_DIR}"):
            if not path.endswith(RECORD_SUFFIX):
                continue
            record = self._read_record(path)
            if record is not None:
                records[record.filename] = record

        return sorted(records.values(), key=lambda r: r.created_at, reverse=True)

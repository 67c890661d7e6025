"""Tests for the per-tenant backup catalog."""

import json
import logging
from datetime import datetime, timedelta, timezone

from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.naming import tenant_prefix
from tenant_backup.models import BackupKind, BackupMethod, BackupRecord, Tenant

BASE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _record(tenant: Tenant, n: int) -> BackupRecord:
    filename = f"{tenant.database}_acme_example_com_2025-01-01_00-00-{n:02d}-000000_full_native.sql.gz"
    return BackupRecord(
        filename=filename,
        path=f"{tenant_prefix(tenant)}/{filename}",
        size=100 + n,
        kind=BackupKind.FULL,
        method=BackupMethod.NATIVE,
        compressed=True,
        created_at=BASE + timedelta(seconds=n),
    )


class TestAppendAndList:
    def test_empty_catalog(self, storage, tenant):
        assert MetadataStore(storage).list(tenant) == []

    def test_n_appends_list_n_newest_first(self, storage, tenant):
        catalog = MetadataStore(storage)
        for n in (3, 1, 4, 2):
            catalog.append(tenant, _record(tenant, n))

        records = catalog.list(tenant)

        assert [r.size for r in records] == [104, 103, 102, 101]

    def test_one_record_file_per_backup(self, storage, tenant):
        catalog = MetadataStore(storage)
        catalog.append(tenant, _record(tenant, 1))
        catalog.append(tenant, _record(tenant, 2))

        files = storage.files(f"{tenant_prefix(tenant)}/metadata")
        assert len(files) == 2
        assert all(f.endswith(".sql.gz.json") for f in files)

    def test_record_round_trips_fields(self, storage, tenant):
        catalog = MetadataStore(storage)
        original = _record(tenant, 7)
        catalog.append(tenant, original)

        assert catalog.list(tenant) == [original]

    def test_tenants_isolated(self, storage, tenant):
        other = Tenant(id="globex", database="tenant_globex", domains=["globex.test"])
        catalog = MetadataStore(storage)
        catalog.append(tenant, _record(tenant, 1))

        assert catalog.list(other) == []


class TestLegacyCatalog:
    def test_legacy_array_merged(self, storage, tenant):
        legacy = _record(tenant, 1).model_dump(mode="json")
        legacy["type"] = legacy.pop("kind")
        storage.put(
            f"{tenant_prefix(tenant)}/metadata.json", json.dumps([legacy]).encode()
        )
        catalog = MetadataStore(storage)
        catalog.append(tenant, _record(tenant, 2))

        records = catalog.list(tenant)

        assert [r.size for r in records] == [102, 101]
        assert records[1].kind is BackupKind.FULL

    def test_remove_drops_legacy_entry(self, storage, tenant):
        legacy = _record(tenant, 1)
        storage.put(
            f"{tenant_prefix(tenant)}/metadata.json",
            json.dumps([legacy.model_dump(mode="json")]).encode(),
        )
        catalog = MetadataStore(storage)

        catalog.remove(tenant, legacy.filename)

        assert catalog.list(tenant) == []


class TestFindAndRemove:
    def test_find(self, storage, tenant):
        catalog = MetadataStore(storage)
        record = _record(tenant, 5)
        catalog.append(tenant, record)

        assert catalog.find(tenant, record.filename) == record
        assert catalog.find(tenant, "nope.sql") is None

    def test_remove(self, storage, tenant):
        catalog = MetadataStore(storage)
        keep, drop = _record(tenant, 1), _record(tenant, 2)
        catalog.append(tenant, keep)
        catalog.append(tenant, drop)

        catalog.remove(tenant, drop.filename)

        assert catalog.list(tenant) == [keep]


class TestUnreadableRecords:
    def test_corrupt_record_skipped_with_warning(self, storage, tenant, caplog):
        catalog = MetadataStore(storage)
        catalog.append(tenant, _record(tenant, 1))
        storage.put(f"{tenant_prefix(tenant)}/metadata/broken.sql.json", b"{not json")

        with caplog.at_level(logging.WARNING, logger="tenant_backup.backup.catalog"):
            records = catalog.list(tenant)

        assert len(records) == 1
        assert "broken.sql.json" in caplog.text

    def test_corrupt_legacy_catalog_skipped(self, storage, tenant):
        storage.put(f"{tenant_prefix(tenant)}/metadata.json", b"[[[")

        assert MetadataStore(storage).list(tenant) == []

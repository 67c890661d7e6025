"""Tests for backup orchestration."""

import gzip

import pytest

from tenant_backup.backup.naming import tenant_prefix
from tenant_backup.backup.orchestrator import BackupOrchestrator
from tenant_backup.detector import AvailableMethods
from tenant_backup.errors import BackupFailed, ExportFailure, StorageError, UnsupportedMethod
from tenant_backup.models import BackupKind, BackupMethod, BackupOptions, Tenant
from tenant_backup.process import ProcessResult


@pytest.fixture
def orchestrator(storage, context, connector_factory, native_only, settings, runner):
    return BackupOrchestrator(
        storage, context, connector_factory, native_only, settings, runner=runner
    )


def _object_files(storage, tenant):
    return [p for p in storage.files(tenant_prefix(tenant))]


class BrokenContext:
    """Tenant context whose switch fails before the callback runs."""

    async def run(self, tenant, callback):
        raise RuntimeError("tenant switch failed")


class TestCreateBackup:
    """Happy paths."""

    async def test_native_full_compressed(self, orchestrator, storage, tenant):
        record = await orchestrator.create_backup(tenant, BackupOptions())

        assert record.filename.endswith("_full_native.sql.gz")
        assert record.path == f"{tenant_prefix(tenant)}/{record.filename}"
        assert record.compressed
        assert record.size == storage.size(record.path)

        text = gzip.decompress(storage.get(record.path)).decode()
        assert text.count("CREATE TABLE `widgets`") == 1
        assert text.count("INSERT INTO") == 1
        assert "(1, 'bolt'),\n(2, 'nut'),\n(3, NULL);" in text

    async def test_structure_only(self, orchestrator, storage, tenant):
        record = await orchestrator.create_backup(
            tenant, BackupOptions(structure_only=True, compress=False)
        )

        assert record.kind is BackupKind.STRUCTURE
        assert record.filename.endswith("_structure_native.sql")
        text = storage.get(record.path).decode()
        assert "CREATE TABLE `widgets`" in text
        assert "INSERT" not in text

    async def test_unqualified_backup_uses_recommended(self, orchestrator, tenant):
        record = await orchestrator.create_backup(tenant)

        assert record.method is BackupMethod.NATIVE

    async def test_record_is_cataloged(self, orchestrator, tenant):
        record = await orchestrator.create_backup(tenant)

        assert orchestrator.catalog.list(tenant) == [record]

    async def test_n_backups_list_n(self, orchestrator, tenant):
        records = [await orchestrator.create_backup(tenant) for _ in range(3)]

        listed = orchestrator.catalog.list(tenant)
        assert len(listed) == 3
        assert listed[0] == records[-1]
        assert len({r.filename for r in listed}) == 3

    async def test_temp_dir_left_empty(self, orchestrator, tenant, temp_dir):
        await orchestrator.create_backup(tenant)

        assert list(temp_dir.iterdir()) == []

    async def test_context_entered_and_exited(self, orchestrator, tenant, context):
        await orchestrator.create_backup(tenant)

        assert context.entered == context.exited == 1

    async def test_connector_closed(self, orchestrator, tenant, connector):
        await orchestrator.create_backup(tenant)

        assert connector.close_count == 1

    async def test_mysqldump_method(
        self, storage, context, connector_factory, all_methods, settings, runner, tenant
    ):
        runner.results["mysqldump"] = ProcessResult(0)
        runner.outputs["mysqldump"] = "-- MySQL dump 10.13\nCREATE TABLE `t` (id int);\n"
        orchestrator = BackupOrchestrator(
            storage, context, connector_factory, all_methods, settings, runner=runner
        )

        record = await orchestrator.create_backup(tenant, BackupOptions(compress=False))

        assert record.method is BackupMethod.MYSQLDUMP
        assert storage.get(record.path).startswith(b"-- MySQL dump 10.13")
        assert runner.calls[0]["argv"][-1] == "tenant_acme"


class TestUnsupportedMethod:
    """Method validation happens before any side effect."""

    async def test_unavailable_method(self, orchestrator, storage, tenant, context, temp_dir):
        with pytest.raises(UnsupportedMethod) as exc_info:
            await orchestrator.create_backup(tenant, BackupOptions(method=BackupMethod.MYSQLDUMP))

        assert exc_info.value.method == "mysqldump"
        assert "native" in exc_info.value.available
        assert context.entered == 0
        assert _object_files(storage, tenant) == []
        assert list(temp_dir.iterdir()) == []

    async def test_client_cannot_export(
        self, storage, context, connector_factory, all_methods, settings, tenant
    ):
        orchestrator = BackupOrchestrator(
            storage, context, connector_factory, all_methods, settings
        )

        with pytest.raises(UnsupportedMethod):
            await orchestrator.create_backup(
                tenant, BackupOptions(method=BackupMethod.MYSQL_CLIENT)
            )

        assert orchestrator.catalog.list(tenant) == []


class TestBackupFailure:
    """Failures abort cleanly and are wrapped in BackupFailed."""

    async def test_export_failure_wrapped(
        self, orchestrator, connector, storage, tenant, context, temp_dir
    ):
        connector.fail_listing = True

        with pytest.raises(BackupFailed) as exc_info:
            await orchestrator.create_backup(tenant)

        assert isinstance(exc_info.value.__cause__, ExportFailure)
        assert exc_info.value.tenant_id == "acme"
        assert list(temp_dir.iterdir()) == []
        assert _object_files(storage, tenant) == []
        assert orchestrator.catalog.list(tenant) == []
        assert context.entered == context.exited == 1

    async def test_storage_failure_wrapped(self, orchestrator, storage, tenant, temp_dir, monkeypatch):
        def _fail(path, local_path):
            raise StorageError("disk full")

        monkeypatch.setattr(storage, "put_file", _fail)

        with pytest.raises(BackupFailed) as exc_info:
            await orchestrator.create_backup(tenant)

        assert isinstance(exc_info.value.__cause__, StorageError)
        assert list(temp_dir.iterdir()) == []
        assert orchestrator.catalog.list(tenant) == []

    async def test_catalog_failure_removes_object(
        self, orchestrator, storage, tenant, monkeypatch
    ):
        def _fail(tenant, record):
            raise StorageError("catalog unavailable")

        monkeypatch.setattr(orchestrator.catalog, "append", _fail)

        with pytest.raises(BackupFailed):
            await orchestrator.create_backup(tenant)

        assert _object_files(storage, tenant) == []

    async def test_size_failure_removes_object(
        self, orchestrator, storage, tenant, monkeypatch
    ):
        def _fail(path):
            raise StorageError("stat failed")

        monkeypatch.setattr(storage, "size", _fail)

        with pytest.raises(BackupFailed) as exc_info:
            await orchestrator.create_backup(tenant)

        assert isinstance(exc_info.value.__cause__, StorageError)
        assert _object_files(storage, tenant) == []
        assert orchestrator.catalog.list(tenant) == []

    async def test_context_entry_failure_wrapped(
        self, storage, connector_factory, native_only, settings, tenant
    ):
        orchestrator = BackupOrchestrator(
            storage, BrokenContext(), connector_factory, native_only, settings
        )

        with pytest.raises(BackupFailed) as exc_info:
            await orchestrator.create_backup(tenant)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.tenant_id == "acme"

    async def test_failure_logged(self, orchestrator, connector, tenant, caplog):
        connector.fail_listing = True

        with pytest.raises(BackupFailed):
            await orchestrator.create_backup(tenant)

        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert any("acme" in r.getMessage() for r in errors)


class TestBackupMany:
    async def test_one_failure_does_not_stop_batch(
        self, storage, context, connector_factory, settings, tenant
    ):
        available = AvailableMethods.native_only()
        orchestrator = BackupOrchestrator(
            storage, context, connector_factory, available, settings
        )
        other = Tenant(id="globex", database="tenant_globex", domains=["globex.test"])

        calls = {"n": 0}
        original = orchestrator.backup_with_connection

        async def _flaky(t, info, method, options):
            calls["n"] += 1
            if t.id == "acme":
                raise BackupFailed(t.id, RuntimeError("boom"))
            return await original(t, info, method, options)

        orchestrator.backup_with_connection = _flaky

        result = await orchestrator.backup_many([tenant, other])

        assert calls["n"] == 2
        assert not result.success
        assert "acme" in result.errors
        assert "globex" in result.records

    async def test_context_failures_collected(
        self, storage, connector_factory, native_only, settings, tenant
    ):
        orchestrator = BackupOrchestrator(
            storage, BrokenContext(), connector_factory, native_only, settings
        )
        other = Tenant(id="globex", database="tenant_globex", domains=["globex.test"])

        result = await orchestrator.backup_many([tenant, other])

        assert set(result.errors) == {"acme", "globex"}
        assert result.records == {}

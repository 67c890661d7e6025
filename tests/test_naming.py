"""Tests for backup filename construction and parsing."""

from datetime import datetime, timezone

from tenant_backup.backup.naming import (
    build_filename,
    parse_filename,
    sanitize_domain,
    tenant_key,
    tenant_prefix,
)
from tenant_backup.models import BackupKind, BackupMethod, Tenant

MOMENT = datetime(2025, 3, 4, 5, 6, 7, 890123, tzinfo=timezone.utc)


class TestSanitizeDomain:
    def test_dots_replaced(self):
        assert sanitize_domain("acme.example.com") == "acme_example_com"

    def test_slashes_and_spaces_replaced(self):
        assert sanitize_domain("a b/c") == "a_b_c"

    def test_hyphen_kept(self):
        assert sanitize_domain("my-shop.io") == "my-shop_io"

    def test_missing_domain(self):
        assert sanitize_domain(None) == "unknown"
        assert sanitize_domain("") == "unknown"


class TestTenantPrefix:
    def test_uses_primary_domain(self, tenant):
        assert tenant_prefix(tenant) == "tenants/acme.example.com/backups"

    def test_falls_back_to_id(self):
        tenant = Tenant(id="t-42", database="tenant_42")
        assert tenant_prefix(tenant) == "tenants/t-42/backups"

    def test_key_is_path_safe(self):
        tenant = Tenant(id="x", database="d", domains=["evil/../x"])
        assert "/" not in tenant_key(tenant)
        assert tenant_key(Tenant(id="..", database="d")) != ".."


class TestBuildFilename:
    def test_full_compressed(self, tenant):
        name = build_filename(tenant, BackupKind.FULL, BackupMethod.NATIVE, True, MOMENT)
        assert name == (
            "tenant_acme_acme_example_com_2025-03-04_05-06-07-890123_full_native.sql.gz"
        )

    def test_structure_uncompressed(self, tenant):
        name = build_filename(
            tenant, BackupKind.STRUCTURE, BackupMethod.PHPMYADMIN, False, MOMENT
        )
        assert name.endswith("_structure_phpmyadmin-style.sql")

    def test_same_second_names_differ(self, tenant):
        a = build_filename(tenant, BackupKind.FULL, BackupMethod.NATIVE, True, MOMENT)
        b = build_filename(
            tenant,
            BackupKind.FULL,
            BackupMethod.NATIVE,
            True,
            MOMENT.replace(microsecond=890124),
        )
        assert a != b


class TestParseFilename:
    def test_recovers_fields(self, tenant):
        name = build_filename(tenant, BackupKind.FULL, BackupMethod.MYSQLDUMP, True, MOMENT)
        parsed = parse_filename(name)

        assert parsed is not None
        assert parsed.kind is BackupKind.FULL
        assert parsed.method is BackupMethod.MYSQLDUMP
        assert parsed.compressed is True
        assert parsed.created_at == MOMENT

    def test_rejects_other_files(self):
        assert parse_filename("metadata.json") is None
        assert parse_filename("notes.sql") is None
        assert parse_filename("a_b_c_full_bogus.sql") is None

    def test_unreadable_timestamp(self):
        parsed = parse_filename("db_dom_yesterday_full_native.sql")
        assert parsed is not None
        assert parsed.created_at is None

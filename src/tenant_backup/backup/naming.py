"""Backup object naming.

Filenames follow::

    {database}_{domain}_{YYYY-MM-DD_HH-MM-SS-ffffff}_{full|structure}_{method}.sql[.gz]

The timestamp is UTC with microseconds, so two backups of the same tenant
started in the same second still get distinct names.  ``kind`` and
``method`` never contain ``_``; parsing works from the right.

Usage:
    from tenant_backup.backup.naming import build_filename, parse_filename, tenant_prefix

    name = build_filename(tenant, BackupKind.FULL, BackupMethod.NATIVE, compressed=True)
    prefix = tenant_prefix(tenant)    # tenants/acme.example.com/backups
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from tenant_backup.models import BackupKind, BackupMethod, Tenant

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S-%f"
UNKNOWN_DOMAIN = "unknown"

_UNSAFE_DOMAIN = re.compile(r"[^A-Za-z0-9-]")
_UNSAFE_KEY = re.compile(r"[^A-Za-z0-9._-]")
_TIMESTAMP = re.compile(r"(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}-\d{6})$")


@dataclass(frozen=True)
class ParsedFilename:
    """Fields recovered from a backup filename."""

    kind: BackupKind
    method: BackupMethod
    compressed: bool
    created_at: datetime | None   # None when the timestamp part is unreadable


def sanitize_domain(domain: str | None) -> str:
    """Replace every character outside ``[A-Za-z0-9-]`` with ``_``."""
    if not domain:
        return UNKNOWN_DOMAIN
    return _UNSAFE_DOMAIN.sub("_", domain)


def tenant_key(tenant: Tenant) -> str:
    """Path-safe storage key: primary domain, else the tenant id."""
    key = tenant.primary_domain or tenant.id
    key = _UNSAFE_KEY.sub("_", key)
    # never let a key act as a relative path component
    return key if key.strip(".") else f"_{key}"


def tenant_prefix(tenant: Tenant) -> str:
    return f"tenants/{tenant_key(tenant)}/backups"


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def build_filename(
    tenant: Tenant,
    kind: BackupKind,
    method: BackupMethod,
    compressed: bool,
    moment: datetime | None = None,
) -> str:
    """Build the backup filename for ``tenant``.

    Args:
        tenant: Tenant being backed up.
        kind: Full or structure-only.
        method: Method producing the dump.
        compressed: Adds ``.gz`` when true.
        moment: Creation time (defaults to now, UTC).
    """
    moment = moment or datetime.now(timezone.utc)
    extension = ".sql.gz" if compressed else ".sql"
    return (
        f"{tenant.database}_{sanitize_domain(tenant.primary_domain)}_"
        f"{format_timestamp(moment)}_{kind.value}_{method.value}{extension}"
    )


def parse_filename(filename: str) -> ParsedFilename | None:
    """Recover kind, method, compression and timestamp from a filename.

    Returns:
        ParsedFilename, or ``None`` if the name is not a backup filename.
    """
    if filename.endswith(".sql.gz"):
        stem, compressed = filename[: -len(".sql.gz")], True
    elif filename.endswith(".sql"):
        stem, compressed = filename[: -len(".sql")], False
    else:
        return None

    parts = stem.rsplit("_", 2)
    if len(parts) != 3:
        return None
    head, kind_part, method_part = parts
    try:
        kind = BackupKind(kind_part)
        method = BackupMethod(method_part)
    except ValueError:
        return None

    created_at = None
    match = _TIMESTAMP.search(head)
    if match:
        created_at = datetime.strptime(match.group(1), TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )
    return ParsedFilename(kind=kind, method=method, compressed=compressed, created_at=created_at)

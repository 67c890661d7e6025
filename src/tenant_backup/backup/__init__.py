"""Backup, restore, catalog and retention.

Usage:
    from tenant_backup.backup import BackupOrchestrator, RestoreOrchestrator
"""

from tenant_backup.backup.catalog import MetadataStore
from tenant_backup.backup.naming import (
    ParsedFilename,
    build_filename,
    parse_filename,
    sanitize_domain,
    tenant_prefix,
)
from tenant_backup.backup.orchestrator import BackupOrchestrator
from tenant_backup.backup.restore import RestoreOrchestrator
from tenant_backup.backup.retention import Retention

__all__ = [
    "MetadataStore",
    "ParsedFilename",
    "build_filename",
    "parse_filename",
    "sanitize_domain",
    "tenant_prefix",
    "BackupOrchestrator",
    "RestoreOrchestrator",
    "Retention",
]

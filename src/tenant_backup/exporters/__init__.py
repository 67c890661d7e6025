"""Dump producers and loaders.

- ``NativeSqlExporter``: in-process dump, ``native`` / ``phpmyadmin-style`` dialects
- ``MysqldumpExporter``: ``mysqldump`` child process
- ``MysqlClientRestorer``: ``mysql`` client child process
"""

from tenant_backup.exporters.external import MysqlClientRestorer, MysqldumpExporter
from tenant_backup.exporters.native import (
    NATIVE,
    PHPMYADMIN,
    ExportSummary,
    NativeSqlExporter,
    SqlDialect,
    dialect_for,
)

__all__ = [
    "MysqlClientRestorer",
    "MysqldumpExporter",
    "NATIVE",
    "PHPMYADMIN",
    "ExportSummary",
    "NativeSqlExporter",
    "SqlDialect",
    "dialect_for",
]

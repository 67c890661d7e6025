"""Database and tenant-context adapters.

Provides the ``DatabaseConnector`` and ``TenantContextSwitcher`` Protocols
and their concrete implementations: ``MySQLConnector`` (SQLAlchemy async
engine with ``aiomysql``) and ``ConfigTenantContext``.

Usage:
    from tenant_backup.adapters import MySQLConnector, ConfigTenantContext
"""

from tenant_backup.adapters.base import (
    ConnectorFactory,
    DatabaseConnector,
    RowBatch,
    TenantContextSwitcher,
)
from tenant_backup.adapters.context import ConfigTenantContext
from tenant_backup.adapters.mysql import MySQLConnector

__all__ = [
    "ConnectorFactory",
    "DatabaseConnector",
    "RowBatch",
    "TenantContextSwitcher",
    "ConfigTenantContext",
    "MySQLConnector",
]

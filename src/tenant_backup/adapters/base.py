"""Collaborator protocol definitions.

Defines the ``DatabaseConnector`` Protocol (schema introspection, row
streaming and raw statement execution against one tenant database) and
the ``TenantContextSwitcher`` Protocol (scoped activation of a tenant's
connection).  All methods are ``async def``; ``stream_rows`` is an async
generator.

Usage:
    from tenant_backup.adapters.base import DatabaseConnector

    async def count_rows(connector: DatabaseConnector, table: str) -> int:
        total = 0
        async for _columns, rows in connector.stream_rows(table, batch_size=500):
            total += len(rows)
        return total
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any, Protocol, TypeVar

from tenant_backup.models import DatabaseConnectionInfo, Tenant

T = TypeVar("T")

# (column names, rows) for one fetched batch
RowBatch = tuple[list[str], list[tuple[Any, ...]]]


class DatabaseConnector(Protocol):
    """Database connector interface used by the exporters and restore.

    A connector is bound to one ``DatabaseConnectionInfo`` and owns its
    connection pool; call ``close()`` when done.
    """

    async def list_tables(self) -> list[str]:
        """Return the names of all base tables (views excluded), sorted."""
        ...

    async def show_create_table(self, table: str) -> str:
        """Return the ``CREATE TABLE`` statement for ``table`` (no trailing ``;``)."""
        ...

    def stream_rows(self, table: str, batch_size: int) -> AsyncIterator[RowBatch]:
        """Yield ``(columns, rows)`` batches of at most ``batch_size`` rows.

        Rows are fetched from a server-side cursor so a table is never
        materialized in memory.  Empty tables yield nothing.
        """
        ...

    async def server_version(self) -> str:
        """Return the server version string (for dump headers)."""
        ...

    async def execute_script(self, statements: Iterable[str]) -> int:
        """Execute statements in order on one autocommit session.

        Session settings issued by earlier statements (``SET ...``) apply to
        later ones.  Stops at the first failing statement and re-raises the
        driver error.

        Returns:
            Number of statements executed.
        """
        ...

    async def recreate_database(self, database: str, charset: str, collation: str) -> None:
        """Drop ``database`` if it exists and create it empty.

        Runs at server level (no default database selected).
        """
        ...

    async def table_stats(self) -> tuple[int, int]:
        """Return ``(table count, approximate row count)`` for the database."""
        ...

    async def close(self) -> None:
        """Dispose of the connection pool."""
        ...


# Builds a connector for one tenant connection
ConnectorFactory = Callable[[DatabaseConnectionInfo], DatabaseConnector]


class TenantContextSwitcher(Protocol):
    """Activates a tenant's database connection for the duration of a callback.

    Implementations must deactivate the tenant context on every exit path,
    including exceptions raised by ``callback``.
    """

    async def run(
        self,
        tenant: Tenant,
        callback: Callable[[DatabaseConnectionInfo], Awaitable[T]],
    ) -> T:
        """Run ``callback`` with the tenant's active connection info."""
        ...

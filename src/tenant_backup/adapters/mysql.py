"""Async MySQL database connector.

Provides ``MySQLConnector``, an implementation of the ``DatabaseConnector``
protocol using SQLAlchemy's async engine with the ``aiomysql`` driver.

Dump statements are executed with ``exec_driver_sql`` and the
``no_parameters`` execution option, so ``:name`` and ``%`` sequences in
row data are passed to the server verbatim instead of being parsed as
bind parameters.

Usage:
    from tenant_backup.adapters.mysql import MySQLConnector

    connector = MySQLConnector(info)
    tables = await connector.list_tables()
    await connector.close()
"""

from collections.abc import AsyncIterator, Iterable
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tenant_backup.adapters.base import RowBatch
from tenant_backup.models import DatabaseConnectionInfo
from tenant_backup.sql import check_token, quote_identifier


def _table_ref(table: str) -> str:
    # text() treats ":name" as a bind parameter; escape colons in identifiers
    return quote_identifier(table).replace(":", r"\:")


def build_url(info: DatabaseConnectionInfo, with_database: bool = True) -> URL:
    """Build a ``mysql+aiomysql`` URL from connection info.

    Args:
        info: Tenant connection parameters.
        with_database: When ``False`` no default database is selected
            (server-level statements such as ``DROP DATABASE``).
    """
    return URL.create(
        "mysql+aiomysql",
        username=info.username,
        password=info.password.get_secret_value() or None,
        host=info.host,
        port=info.port,
        database=info.database if with_database else None,
        query={"charset": info.charset},
    )


def create_async_engine_pooled(url: URL, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine for one backup/restore operation.

    Default pool settings:

    - ``pool_size=2``: One connection streams rows while another introspects.
    - ``max_overflow=2``: Headroom for overlapping introspection queries.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.
    - ``connect_timeout=10``: Fail fast when the server is unreachable.

    Args:
        url: ``mysql+aiomysql`` connection URL.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine`` (caller kwargs override defaults).
    """
    defaults: dict[str, Any] = {
        "pool_size": 2,
        "max_overflow": 2,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "connect_args": {"connect_timeout": 10},
        "echo": False,
    }
    merged = {**defaults, **kwargs}

    return create_async_engine(url, **merged)


class MySQLConnector:
    """Async MySQL implementation of the ``DatabaseConnector`` protocol.

    The engine bound to the tenant database is created eagerly; the
    server-level engine used by ``recreate_database`` is created on demand
    and disposed right after use.

    Args:
        info: Tenant connection parameters.
        **engine_kwargs: Forwarded to ``create_async_engine_pooled``.
    """

    def __init__(self, info: DatabaseConnectionInfo, **engine_kwargs: Any) -> None:
        self._info = info
        self._engine_kwargs = engine_kwargs
        self._engine: AsyncEngine = create_async_engine_pooled(
            build_url(info), **engine_kwargs
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[str]:
        """List base tables via ``SHOW FULL TABLES``."""
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text("SHOW FULL TABLES WHERE Table_type = 'BASE TABLE'")
            )
            return sorted(row[0] for row in result.fetchall())

    async def show_create_table(self, table: str) -> str:
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(f"SHOW CREATE TABLE {_table_ref(table)}")
            )
            row = result.fetchone()
            if row is None:
                raise ValueError(f"SHOW CREATE TABLE returned nothing for {table}")
            return row[1]

    async def stream_rows(self, table: str, batch_size: int) -> AsyncIterator[RowBatch]:
        """Stream ``SELECT *`` through a server-side cursor in batches."""
        async with self._engine.connect() as conn:
            result = await conn.stream(text(f"SELECT * FROM {_table_ref(table)}"))
            columns = list(result.keys())
            async for partition in result.partitions(batch_size):
                yield columns, [tuple(row) for row in partition]

    async def server_version(self) -> str:
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT VERSION()"))
            return str(result.scalar())

    async def table_stats(self) -> tuple[int, int]:
        """Count tables and sum ``table_rows`` from ``information_schema``.

        ``table_rows`` is an InnoDB estimate, hence "approximate".
        """
        query = text(
            """
            SELECT COUNT(*), COALESCE(SUM(table_rows), 0)
            FROM information_schema.tables
            WHERE table_schema = :schema
              AND table_type = 'BASE TABLE'
            """
        )
        async with self._engine.connect() as conn:
            result = await conn.execute(query, {"schema": self._info.database})
            row = result.fetchone()
            if row is None:
                return 0, 0
            return int(row[0] or 0), int(row[1] or 0)

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    async def execute_script(self, statements: Iterable[str]) -> int:
        """Execute statements on one autocommit connection.

        Uses ``isolation_level="AUTOCOMMIT"`` so transaction statements in
        the dump (``START TRANSACTION`` / ``COMMIT``) are honoured by the
        server rather than wrapped by SQLAlchemy.
        """
        executed = 0
        async with self._engine.connect() as conn:
            conn = await conn.execution_options(
                isolation_level="AUTOCOMMIT", no_parameters=True
            )
            for statement in statements:
                await conn.exec_driver_sql(statement)
                executed += 1
        return executed

    async def recreate_database(self, database: str, charset: str, collation: str) -> None:
        """Drop and create ``database`` on a server-level connection."""
        check_token(charset, "charset")
        check_token(collation, "collation")
        name = quote_identifier(database)

        engine = create_async_engine_pooled(
            build_url(self._info, with_database=False), **self._engine_kwargs
        )
        try:
            async with engine.connect() as conn:
                conn = await conn.execution_options(
                    isolation_level="AUTOCOMMIT", no_parameters=True
                )
                await conn.exec_driver_sql(f"DROP DATABASE IF EXISTS {name}")
                await conn.exec_driver_sql(
                    f"CREATE DATABASE {name} CHARACTER SET {charset} COLLATE {collation}"
                )
        finally:
            await engine.dispose()

        # Pooled connections still point at the dropped schema
        await self._engine.dispose()

    async def close(self) -> None:
        """Close the async engine and dispose of the connection pool."""
        if self._engine:
            await self._engine.dispose()

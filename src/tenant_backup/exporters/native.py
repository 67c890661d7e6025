"""In-process SQL dump generator.

Writes a self-contained MySQL dump (schema plus, optionally, data) using
only a ``DatabaseConnector``; no ``mysqldump`` binary is required.  Rows
are streamed from a server-side cursor and written as they arrive, so
memory use does not grow with table size.

The two native formats differ only in header text, an explicit column
list in ``INSERT`` statements and ``/*!40101 */`` wrapping of charset
statements; they are expressed as ``SqlDialect`` values driving one
exporter.

Usage:
    from tenant_backup.exporters.native import NativeSqlExporter, PHPMYADMIN

    exporter = NativeSqlExporter(connector, dialect=PHPMYADMIN, batch_size=500)
    summary = await exporter.export(info, Path("/tmp/dump.sql"), structure_only=False)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from tenant_backup.adapters.base import DatabaseConnector
from tenant_backup.errors import ExportFailure
from tenant_backup.models import BackupMethod, DatabaseConnectionInfo
from tenant_backup.sql import check_token, quote_identifier, quote_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SqlDialect:
    """Formatting variant of the native dump."""

    method: BackupMethod
    header: str                 # first header comment line
    explicit_columns: bool      # INSERT INTO t (`a`, `b`) VALUES ...
    versioned_comments: bool    # wrap charset statements in /*!40101 ... */

    @property
    def name(self) -> str:
        return self.method.value


NATIVE = SqlDialect(
    method=BackupMethod.NATIVE,
    header="MySQL dump created by native export",
    explicit_columns=False,
    versioned_comments=False,
)

PHPMYADMIN = SqlDialect(
    method=BackupMethod.PHPMYADMIN,
    header="phpMyAdmin SQL Dump",
    explicit_columns=True,
    versioned_comments=True,
)

DIALECTS: dict[BackupMethod, SqlDialect] = {d.method: d for d in (NATIVE, PHPMYADMIN)}


def dialect_for(method: BackupMethod) -> SqlDialect:
    """Return the dialect of a native method.

    Raises:
        KeyError: If ``method`` is not a native method.
    """
    return DIALECTS[method]


@dataclass(frozen=True)
class ExportSummary:
    """What a native export wrote."""

    tables: int
    rows: int


class NativeSqlExporter:
    """Generates a MySQL dump through a ``DatabaseConnector``.

    Args:
        connector: Connector bound to the tenant database.
        dialect: Output formatting variant.
        batch_size: Rows fetched per round trip while streaming.
    """

    def __init__(
        self,
        connector: DatabaseConnector,
        dialect: SqlDialect = NATIVE,
        batch_size: int = 1000,
    ) -> None:
        self._connector = connector
        self._dialect = dialect
        self._batch_size = batch_size

    async def export(
        self,
        info: DatabaseConnectionInfo,
        output_path: Path,
        structure_only: bool = False,
    ) -> ExportSummary:
        """Write the dump of ``info.database`` to ``output_path``.

        Raises:
            ExportFailure: If introspection, row streaming or writing fails.
        """
        try:
            with open(output_path, "w", encoding="utf-8", newline="\n") as out:
                return await self._write_dump(out, info, structure_only)
        except ExportFailure:
            raise
        except Exception as e:
            raise ExportFailure(f"Native export of '{info.database}' failed: {e}") from e

    async def _write_dump(
        self, out: TextIO, info: DatabaseConnectionInfo, structure_only: bool
    ) -> ExportSummary:
        version = await self._connector.server_version()
        tables = await self._connector.list_tables()

        self._write_header(out, info, version)
        self._write_preamble(out, check_token(info.charset, "charset"))

        total_rows = 0
        for table in tables:
            create_sql = await self._connector.show_create_table(table)
            self._write_section(out, f"Table structure for table {quote_identifier(table)}")
            out.write(f"DROP TABLE IF EXISTS {quote_identifier(table)};\n")
            out.write(create_sql.rstrip().rstrip(";") + ";\n\n")

            if not structure_only:
                total_rows += await self._write_table_data(out, table)

        self._write_epilogue(out)
        logger.debug(
            "Native export of %s wrote %d tables, %d rows", info.database, len(tables), total_rows
        )
        return ExportSummary(tables=len(tables), rows=total_rows)

    async def _write_table_data(self, out: TextIO, table: str) -> int:
        """Write LOCK / one multi-row INSERT / UNLOCK; return the row count."""
        name = quote_identifier(table)
        self._write_section(out, f"Dumping data for table {name}")
        out.write(f"LOCK TABLES {name} WRITE;\n")

        rows_written = 0
        async for columns, rows in self._connector.stream_rows(table, self._batch_size):
            for row in rows:
                if rows_written == 0:
                    out.write(self._insert_prefix(name, columns))
                else:
                    out.write(",\n")
                out.write("(" + ", ".join(quote_value(v) for v in row) + ")")
                rows_written += 1

        if rows_written:
            out.write(";\n")
        elif self._dialect.explicit_columns:
            out.write(f"-- No data to dump for table {name}\n")

        out.write("UNLOCK TABLES;\n\n")
        return rows_written

    def _insert_prefix(self, name: str, columns: list[str]) -> str:
        if self._dialect.explicit_columns:
            column_list = ", ".join(quote_identifier(c) for c in columns)
            return f"INSERT INTO {name} ({column_list}) VALUES\n"
        return f"INSERT INTO {name} VALUES\n"

    # ------------------------------------------------------------------
    # Fixed sections
    # ------------------------------------------------------------------

    def _write_header(self, out: TextIO, info: DatabaseConnectionInfo, version: str) -> None:
        generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        out.write(f"-- {self._dialect.header}\n")
        out.write(f"-- Host: {info.host}:{info.port}    Database: {info.database}\n")
        out.write("-- ------------------------------------------------------\n")
        out.write(f"-- Server version: {version}\n")
        out.write(f"-- Generation time: {generated}\n\n")

    def _charset_statement(self, statement: str) -> str:
        if self._dialect.versioned_comments:
            return f"/*!40101 {statement} */;\n"
        return f"{statement};\n"

    def _write_preamble(self, out: TextIO, charset: str) -> None:
        out.write(self._charset_statement("SET @OLD_CHARACTER_SET_CLIENT=@@CHARACTER_SET_CLIENT"))
        out.write(self._charset_statement("SET @OLD_CHARACTER_SET_RESULTS=@@CHARACTER_SET_RESULTS"))
        out.write(self._charset_statement("SET @OLD_COLLATION_CONNECTION=@@COLLATION_CONNECTION"))
        out.write(self._charset_statement(f"SET NAMES {charset}"))
        out.write("SET @OLD_UNIQUE_CHECKS=@@UNIQUE_CHECKS, UNIQUE_CHECKS=0;\n")
        out.write("SET @OLD_FOREIGN_KEY_CHECKS=@@FOREIGN_KEY_CHECKS, FOREIGN_KEY_CHECKS=0;\n")
        out.write("SET @OLD_SQL_MODE=@@SQL_MODE, SQL_MODE='NO_AUTO_VALUE_ON_ZERO';\n")
        out.write("SET @OLD_AUTOCOMMIT=@@AUTOCOMMIT, AUTOCOMMIT=0;\n")
        out.write("START TRANSACTION;\n\n")

    def _write_epilogue(self, out: TextIO) -> None:
        out.write("COMMIT;\n")
        out.write("SET SQL_MODE=@OLD_SQL_MODE;\n")
        out.write("SET FOREIGN_KEY_CHECKS=@OLD_FOREIGN_KEY_CHECKS;\n")
        out.write("SET UNIQUE_CHECKS=@OLD_UNIQUE_CHECKS;\n")
        out.write(self._charset_statement("SET CHARACTER_SET_CLIENT=@OLD_CHARACTER_SET_CLIENT"))
        out.write(self._charset_statement("SET CHARACTER_SET_RESULTS=@OLD_CHARACTER_SET_RESULTS"))
        out.write(self._charset_statement("SET COLLATION_CONNECTION=@OLD_COLLATION_CONNECTION"))
        out.write("SET AUTOCOMMIT=@OLD_AUTOCOMMIT;\n")

    def _write_section(self, out: TextIO, title: str) -> None:
        out.write(f"--\n-- {title}\n--\n\n")

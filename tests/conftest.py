"""Shared fakes for tenant backup tests.

``FakeConnector`` is a tiny in-memory MySQL stand-in: it serves tables to
the native exporter and interprets the ``DROP``/``CREATE``/``INSERT``
statements of a replayed dump, so backup -> restore round trips can run
without a server.
"""

import re
from pathlib import Path

import pytest

from tenant_backup.config.models import BackupSettings
from tenant_backup.detector import AvailableMethods
from tenant_backup.models import BackupMethod, DatabaseConnectionInfo, Tenant
from tenant_backup.process import ProcessResult
from tenant_backup.storage import LocalStorage

_TABLE_NAME = re.compile(r"^(?:CREATE TABLE|INSERT INTO|DROP TABLE IF EXISTS)\s+`([^`]+)`")
_COLUMN_LINE = re.compile(r"^\s*`([^`]+)`", re.MULTILINE)


class FakeTable:
    def __init__(self, create_sql: str, columns: list[str], rows: list[tuple]):
        self.create_sql = create_sql
        self.columns = columns
        self.rows = rows


class FakeConnector:
    """In-memory ``DatabaseConnector``."""

    def __init__(self, tables: dict[str, FakeTable] | None = None):
        self.tables: dict[str, FakeTable] = dict(tables or {})
        self.executed: list[str] = []
        self.recreated: list[tuple[str, str, str]] = []
        self.fail_on: str | None = None     # substring making execute_script raise
        self.fail_listing = False
        self.close_count = 0

    def add_table(self, name: str, columns: list[str], rows: list[tuple]) -> None:
        body = ",\n".join(f"  `{c}` varchar(255) DEFAULT NULL" for c in columns)
        create_sql = f"CREATE TABLE `{name}` (\n{body}\n) ENGINE=InnoDB"
        self.tables[name] = FakeTable(create_sql, columns, rows)

    async def list_tables(self) -> list[str]:
        if self.fail_listing:
            raise RuntimeError("connection lost")
        return sorted(self.tables)

    async def show_create_table(self, table: str) -> str:
        return self.tables[table].create_sql

    async def stream_rows(self, table: str, batch_size: int):
        t = self.tables[table]
        for start in range(0, len(t.rows), batch_size):
            yield list(t.columns), t.rows[start : start + batch_size]

    async def server_version(self) -> str:
        return "8.0.36-fake"

    async def execute_script(self, statements) -> int:
        count = 0
        for statement in statements:
            if self.fail_on and self.fail_on in statement:
                raise RuntimeError(f"statement failed: {statement[:40]}")
            self.executed.append(statement)
            self._apply(statement)
            count += 1
        return count

    def _apply(self, statement: str) -> None:
        match = _TABLE_NAME.match(statement)
        if not match:
            return
        name = match.group(1)
        if statement.startswith("DROP TABLE"):
            self.tables.pop(name, None)
        elif statement.startswith("CREATE TABLE"):
            self.tables[name] = FakeTable(statement, _COLUMN_LINE.findall(statement), [])
        elif statement.startswith("INSERT INTO"):
            # the native exporter writes one row tuple per line
            rows = [line for line in statement.splitlines() if line.startswith("(")]
            self.tables[name].rows.extend((line,) for line in rows)

    async def recreate_database(self, database: str, charset: str, collation: str) -> None:
        self.recreated.append((database, charset, collation))
        self.tables.clear()

    async def table_stats(self) -> tuple[int, int]:
        return len(self.tables), sum(len(t.rows) for t in self.tables.values())

    async def close(self) -> None:
        self.close_count += 1


class FakeContext:
    """``TenantContextSwitcher`` that counts enters and exits."""

    def __init__(self, host: str = "db.internal"):
        self.host = host
        self.entered = 0
        self.exited = 0

    async def run(self, tenant: Tenant, callback):
        self.entered += 1
        try:
            return await callback(
                DatabaseConnectionInfo(
                    host=self.host,
                    database=tenant.database,
                    username="app",
                    password="s3cret",
                )
            )
        finally:
            self.exited += 1


class FakeRunner:
    """Process runner returning scripted results per binary name."""

    def __init__(self):
        self.results: dict[str, ProcessResult] = {}
        self.outputs: dict[str, str] = {}
        self.raises: dict[str, BaseException] = {}
        self.calls: list[dict] = []

    async def __call__(self, argv, *, stdin_path=None, stdout_path=None, env=None, timeout=None):
        self.calls.append(
            {
                "argv": list(argv),
                "stdin_path": stdin_path,
                "stdout_path": stdout_path,
                "env": env,
                "timeout": timeout,
                "stdin": Path(stdin_path).read_text() if stdin_path else None,
            }
        )
        binary = argv[0]
        if binary in self.raises:
            raise self.raises[binary]
        if stdout_path is not None:
            Path(stdout_path).write_text(self.outputs.get(binary, ""))
        return self.results.get(binary, ProcessResult(returncode=127, stderr="not found"))


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(id="acme", database="tenant_acme", domains=["acme.example.com"])


@pytest.fixture
def connector() -> FakeConnector:
    conn = FakeConnector()
    conn.add_table("widgets", ["id", "name"], [(1, "bolt"), (2, "nut"), (3, None)])
    return conn


@pytest.fixture
def connector_factory(connector):
    """Factory handing out the shared in-memory connector."""
    seen: list[DatabaseConnectionInfo] = []

    def _factory(info: DatabaseConnectionInfo) -> FakeConnector:
        seen.append(info)
        return connector

    _factory.seen = seen
    return _factory


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage")


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(temp_dir) -> BackupSettings:
    return BackupSettings(temp_dir=temp_dir, batch_size=2)


@pytest.fixture
def native_only() -> AvailableMethods:
    return AvailableMethods.native_only()


@pytest.fixture
def all_methods() -> AvailableMethods:
    return AvailableMethods(methods=frozenset(BackupMethod))

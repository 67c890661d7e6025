"""``mysqldump`` exporter and ``mysql`` client restorer.

Both run the configured binary as a child process with an argument
vector (no shell).  The password travels in the child's ``MYSQL_PWD``
environment variable so it never appears in the process list.

Usage:
    from tenant_backup.exporters.external import MysqldumpExporter, MysqlClientRestorer

    await MysqldumpExporter(settings).export(info, Path("/tmp/dump.sql"))
    await MysqlClientRestorer(settings).restore(info, Path("/tmp/dump.sql"))
"""

import logging
from pathlib import Path

from tenant_backup.config.models import BackupSettings
from tenant_backup.errors import ExportFailure, ProcessTimeoutError, RestoreFailure
from tenant_backup.models import DatabaseConnectionInfo
from tenant_backup.process import ProcessRunner, run_process

logger = logging.getLogger(__name__)

DUMP_FLAGS = (
    "--single-transaction",
    "--routines",
    "--triggers",
    "--events",
    "--set-gtid-purged=OFF",
)


def connection_args(info: DatabaseConnectionInfo) -> list[str]:
    """Connection flags shared by ``mysqldump`` and ``mysql``."""
    return [
        f"--host={info.host}",
        f"--port={info.port}",
        f"--user={info.username}",
        f"--default-character-set={info.charset}",
    ]


def password_env(info: DatabaseConnectionInfo) -> dict[str, str]:
    password = info.password.get_secret_value()
    return {"MYSQL_PWD": password} if password else {}


class MysqldumpExporter:
    """Dumps a database with the ``mysqldump`` binary.

    Args:
        settings: Backup settings (binary path, process timeout).
        runner: Process runner (defaults to ``run_process``).
    """

    def __init__(self, settings: BackupSettings, runner: ProcessRunner = run_process) -> None:
        self._settings = settings
        self._runner = runner

    def build_argv(self, info: DatabaseConnectionInfo, structure_only: bool = False) -> list[str]:
        argv = [self._settings.mysqldump_path, *connection_args(info), *DUMP_FLAGS]
        if structure_only:
            argv.append("--no-data")
        argv.append(info.database)
        return argv

    async def export(
        self,
        info: DatabaseConnectionInfo,
        output_path: Path,
        structure_only: bool = False,
    ) -> None:
        """Write the ``mysqldump`` output for ``info.database`` to ``output_path``.

        Raises:
            ExportFailure: On a non-zero exit status or a timeout.
        """
        argv = self.build_argv(info, structure_only)
        logger.debug("Running %s for database %s", argv[0], info.database)
        try:
            result = await self._runner(
                argv,
                stdout_path=output_path,
                env=password_env(info),
                timeout=self._settings.process_timeout,
            )
        except ProcessTimeoutError as e:
            raise ExportFailure(f"mysqldump of '{info.database}' timed out") from e

        if not result.ok:
            raise ExportFailure(
                f"mysqldump of '{info.database}' exited with status {result.returncode}",
                stderr=result.stderr,
            )


class MysqlClientRestorer:
    """Loads a plain SQL file with the ``mysql`` client.

    Args:
        settings: Backup settings (binary path, process timeout).
        runner: Process runner (defaults to ``run_process``).
    """

    def __init__(self, settings: BackupSettings, runner: ProcessRunner = run_process) -> None:
        self._settings = settings
        self._runner = runner

    def build_argv(self, info: DatabaseConnectionInfo) -> list[str]:
        return [self._settings.mysql_path, *connection_args(info), info.database]

    async def restore(self, info: DatabaseConnectionInfo, input_path: Path) -> None:
        """Pipe ``input_path`` into ``mysql`` connected to ``info.database``.

        Raises:
            RestoreFailure: On a non-zero exit status or a timeout.
        """
        argv = self.build_argv(info)
        logger.debug("Running %s for database %s", argv[0], info.database)
        try:
            result = await self._runner(
                argv,
                stdin_path=input_path,
                env=password_env(info),
                timeout=self._settings.process_timeout,
            )
        except ProcessTimeoutError as e:
            raise RestoreFailure(f"mysql restore of '{info.database}' timed out") from e

        if not result.ok:
            raise RestoreFailure(
                f"mysql restore of '{info.database}' exited with status {result.returncode}",
                stderr=result.stderr,
            )

"""Backup method availability detection.

Probes the configured ``mysqldump`` and ``mysql`` binaries with
``--version``.  The native exporters need no binary and are always
available.  Detection is advisory: a failing probe only marks the method
unavailable.

Usage:
    from tenant_backup.detector import MethodDetector

    available = await MethodDetector(settings).detect()
    method = available.recommended()
"""

import logging
from dataclasses import dataclass, field

from tenant_backup.config.models import BackupSettings
from tenant_backup.errors import ProcessTimeoutError
from tenant_backup.models import BackupMethod
from tenant_backup.process import ProcessRunner, run_process

logger = logging.getLogger(__name__)

PRIORITY: tuple[BackupMethod, ...] = (
    BackupMethod.MYSQLDUMP,
    BackupMethod.NATIVE,
    BackupMethod.PHPMYADMIN,
    BackupMethod.MYSQL_CLIENT,
)


@dataclass(frozen=True)
class BinaryProbe:
    """Result of probing one external binary."""

    method: BackupMethod
    path: str
    available: bool
    version: str = ""
    error: str = ""


@dataclass(frozen=True)
class AvailableMethods:
    """The set of usable methods, plus the probe details behind it."""

    methods: frozenset[BackupMethod]
    probes: tuple[BinaryProbe, ...] = field(default_factory=tuple)

    def __contains__(self, method: object) -> bool:
        return method in self.methods

    def ordered(self) -> list[BackupMethod]:
        """Available methods in priority order."""
        return [m for m in PRIORITY if m in self.methods]

    def names(self) -> list[str]:
        return [m.value for m in self.ordered()]

    def report(self) -> list[BinaryProbe]:
        """Per-binary probe results, for display."""
        return list(self.probes)

    def recommended(self) -> BackupMethod:
        """First available method in priority order.

        ``mysqldump`` > ``native`` > ``phpmyadmin-style`` > ``mysql-client``.
        """
        for method in PRIORITY:
            if method in self.methods:
                return method
        return BackupMethod.NATIVE

    @classmethod
    def native_only(cls) -> "AvailableMethods":
        return cls(methods=frozenset({BackupMethod.NATIVE, BackupMethod.PHPMYADMIN}))


class MethodDetector:
    """Probes the environment for external dump/restore binaries.

    Args:
        settings: Backup settings (binary paths, probe timeout).
        runner: Process runner (defaults to ``run_process``).
    """

    def __init__(self, settings: BackupSettings, runner: ProcessRunner = run_process) -> None:
        self._settings = settings
        self._runner = runner

    async def _probe(self, method: BackupMethod, path: str) -> BinaryProbe:
        try:
            result = await self._runner(
                [path, "--version"], timeout=self._settings.probe_timeout
            )
        except ProcessTimeoutError as e:
            logger.debug("Probe of %s timed out: %s", path, e)
            return BinaryProbe(method=method, path=path, available=False, error=str(e))

        if not result.ok:
            logger.debug("Probe of %s failed (exit %s)", path, result.returncode)
            return BinaryProbe(
                method=method,
                path=path,
                available=False,
                error=result.stderr.strip(),
            )

        version = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        return BinaryProbe(method=method, path=path, available=True, version=version)

    async def detect(self) -> AvailableMethods:
        """Probe binaries and return the available method set."""
        probes = (
            await self._probe(BackupMethod.MYSQLDUMP, self._settings.mysqldump_path),
            await self._probe(BackupMethod.MYSQL_CLIENT, self._settings.mysql_path),
        )
        methods = {BackupMethod.NATIVE, BackupMethod.PHPMYADMIN}
        methods.update(p.method for p in probes if p.available)

        available = AvailableMethods(methods=frozenset(methods), probes=probes)
        logger.info("Available backup methods: %s", ", ".join(available.names()))
        return available

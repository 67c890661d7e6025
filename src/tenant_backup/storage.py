"""Storage backend for backup objects.

Defines the ``Storage`` Protocol (a path-keyed object store) and
``LocalStorage``, a local-disk implementation rooted at a directory.
Object paths always use ``/`` separators and are relative to the root.

Usage:
    from tenant_backup.storage import LocalStorage

    storage = LocalStorage("/var/backups/tenants")
    storage.put_file("tenants/acme.example.com/backups/x.sql.gz", Path("/tmp/x"))
    for path in storage.files("tenants/acme.example.com/backups"):
        print(path, storage.size(path))
"""

import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol

from tenant_backup.errors import StorageError


class Storage(Protocol):
    """Path-keyed object store used for backups and catalog records.

    Every method raises ``StorageError`` on failure.
    """

    def put_file(self, path: str, local_path: Path) -> None:
        """Upload a local file to ``path`` (overwrites)."""
        ...

    def get_file(self, path: str, local_path: Path) -> None:
        """Download ``path`` into a local file."""
        ...

    def put(self, path: str, data: bytes) -> None:
        """Write ``data`` to ``path`` (overwrites)."""
        ...

    def get(self, path: str) -> bytes:
        """Read the whole object at ``path``."""
        ...

    def size(self, path: str) -> int:
        """Object size in bytes."""
        ...

    def last_modified(self, path: str) -> datetime:
        """Last modification time (timezone-aware, UTC)."""
        ...

    def delete(self, path: str) -> None:
        """Delete the object at ``path`` (no error when already gone)."""
        ...

    def exists(self, path: str) -> bool:
        ...

    def files(self, prefix: str) -> list[str]:
        """Object paths directly under ``prefix`` (non-recursive, sorted)."""
        ...

    def make_directory(self, path: str) -> None:
        ...


class LocalStorage:
    """``Storage`` implementation backed by a local directory.

    Paths that would escape the root (``..``, absolute paths) are rejected
    with ``StorageError``.

    Args:
        root: Directory holding all objects.  Created on first use.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise StorageError(f"Invalid storage path: {path!r}")
        return self._root.joinpath(*rel.parts)

    def put_file(self, path: str, local_path: Path) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, target)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def get_file(self, path: str, local_path: Path) -> None:
        source = self._resolve(path)
        try:
            shutil.copyfile(source, local_path)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def put(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def get(self, path: str) -> bytes:
        try:
            return self._resolve(path).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def size(self, path: str) -> int:
        try:
            return self._resolve(path).stat().st_size
        except OSError as e:
            raise StorageError(f"Failed to stat {path}: {e}") from e

    def last_modified(self, path: str) -> datetime:
        try:
            mtime = self._resolve(path).stat().st_mtime
        except OSError as e:
            raise StorageError(f"Failed to stat {path}: {e}") from e
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    def delete(self, path: str) -> None:
        try:
            self._resolve(path).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def files(self, prefix: str) -> list[str]:
        directory = self._resolve(prefix)
        if not directory.is_dir():
            return []
        base = PurePosixPath(prefix)
        try:
            return sorted(
                str(base / entry.name)
                for entry in directory.iterdir()
                if entry.is_file()
            )
        except OSError as e:
            raise StorageError(f"Failed to list {prefix}: {e}") from e

    def make_directory(self, path: str) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}") from e

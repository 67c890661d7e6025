"""Gzip encode/decode of a backup file in place.

The file is streamed through a sibling temporary file which then replaces
the original, so a failure leaves the original untouched.

Usage:
    from tenant_backup.compression import encode, decode

    encode(Path("/tmp/dump.sql"))   # now gzip data, same path
    decode(Path("/tmp/dump.sql"))   # plain SQL again
"""

import gzip
import os
import shutil
import tempfile
import zlib
from pathlib import Path

from tenant_backup.errors import CompressionError, DecompressionError

COMPRESSION_LEVEL = 9
CHUNK_SIZE = 1024 * 1024


def _replace_via_sibling(path: Path, transform) -> None:
    """Write ``transform(src, dst)`` into a sibling temp file, then swap it in."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with open(fd, "wb") as dst, open(path, "rb") as src:
            transform(src, dst)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def encode(path: Path | str) -> None:
    """Gzip-encode ``path`` in place at maximum compression.

    Raises:
        CompressionError: If the file cannot be read or written.
    """
    path = Path(path)

    def _compress(src, dst) -> None:
        with gzip.GzipFile(
            filename=path.name, mode="wb", fileobj=dst, compresslevel=COMPRESSION_LEVEL
        ) as gz:
            shutil.copyfileobj(src, gz, CHUNK_SIZE)

    try:
        _replace_via_sibling(path, _compress)
    except OSError as e:
        raise CompressionError(f"Backup compression failed for {path.name}: {e}") from e


def decode(path: Path | str) -> None:
    """Gzip-decode ``path`` in place.

    Raises:
        DecompressionError: If the file is missing, truncated, or not gzip.
    """
    path = Path(path)

    def _decompress(src, dst) -> None:
        with gzip.GzipFile(fileobj=src, mode="rb") as gz:
            shutil.copyfileobj(gz, dst, CHUNK_SIZE)

    try:
        _replace_via_sibling(path, _decompress)
    except (OSError, EOFError, zlib.error) as e:
        # gzip.BadGzipFile is an OSError subclass
        raise DecompressionError(
            f"Backup decompression failed for {path.name}: {e}"
        ) from e

"""redditbg - Atomic I/O utilities.

Atomic publish rule for cached and current images:
1. Write to temp path in same directory
2. Flush + best-effort fsync
3. Rename temp -> final (the publish boundary)

A cached image either exists complete or not at all, so the picker never
sees a half-written file.
"""

import os
import tempfile
from pathlib import Path

TEMP_SUFFIX = ".tmp"


def _write_all(fd: int, data: bytes) -> None:
    """Write all bytes to a file descriptor, handling partial writes.

    Args:
        fd: File descriptor to write to.
        data: Bytes to write.

    Raises:
        OSError: If write fails or returns 0 bytes unexpectedly.
    """
    total_written = 0
    data_len = len(data)

    while total_written < data_len:
        try:
            written = os.write(fd, data[total_written:])
            if written == 0:
                raise OSError("os.write() returned 0 bytes unexpectedly")
            total_written += written
        except InterruptedError:
            continue


def _fsync_directory(dir_path: Path) -> None:
    """Best-effort fsync on a directory (no-op where unsupported)."""
    try:
        fd = os.open(dir_path, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # O_DIRECTORY is missing on Windows
        pass


def atomic_write_bytes(
    final_path: str | Path,
    data: bytes,
    temp_suffix: str = TEMP_SUFFIX,
) -> None:
    """Atomically write bytes to a file.

    Every call writes to its own uniquely named temp file, so concurrent
    writers of the same final path never share a temp file. The last
    rename wins.

    Args:
        final_path: The target path for the final file.
        data: Bytes to write.
        temp_suffix: Suffix for the temporary file (default: ".tmp").

    Raises:
        OSError: If directory creation, write, or rename fails.
    """
    final_path = Path(final_path)

    final_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=final_path.parent, prefix=final_path.name + ".", suffix=temp_suffix)
    temp_path = Path(temp_name)
    try:
        try:
            _write_all(fd, data)
            os.fsync(fd)
        finally:
            os.close(fd)
        os.replace(temp_path, final_path)
    except OSError:
        try:
            os.remove(temp_path)
        except OSError:
            pass
        raise

    _fsync_directory(final_path.parent)


def cleanup_orphan_temp_files(directory: str | Path, temp_suffix: str = TEMP_SUFFIX) -> int:
    """Remove leftover temp files from interrupted writes.

    Args:
        directory: Directory to scan for temp files.
        temp_suffix: Suffix pattern to match (default: ".tmp").

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    removed = 0

    if not directory.exists():
        return 0

    for temp_file in directory.glob(f"*{temp_suffix}"):
        try:
            temp_file.unlink()
            removed += 1
        except OSError:
            pass

    return removed

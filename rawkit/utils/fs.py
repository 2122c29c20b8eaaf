"""File system utilities for rawkit.

Output directory handling, collision-free output naming and atomic writes.
"""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from rawkit.utils.logging import get_logger

log = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_unique_path(path: Path, reserved: set[Path] | None = None) -> Path:
    """Get a unique path by adding a counter suffix if path exists.

    Args:
        path: Original path
        reserved: Paths already claimed but not yet written

    Returns:
        Unique path that neither exists nor is reserved
    """
    reserved = reserved or set()
    if not path.exists() and path not in reserved:
        return path

    stem = path.stem
    suffix = path.suffix
    parent = path.parent

    counter = 1
    while True:
        new_path = parent / f"{stem}_{counter}{suffix}"
        if not new_path.exists() and new_path not in reserved:
            return new_path
        counter += 1


@contextmanager
def atomic_write(file_path: Path) -> Iterator[IO[Any]]:
    """Context manager for atomic binary file writes.

    Writes to a temp file first, then atomically moves to target.

    Args:
        file_path: Target file path

    Yields:
        Binary file handle
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in the same directory so the rename stays on one filesystem
    temp_fd, temp_name = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
    )
    temp_path = Path(temp_name)

    try:
        with os.fdopen(temp_fd, "wb") as f:
            yield f
        temp_path.replace(file_path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def write_bytes_atomic(file_path: Path, data: bytes) -> Path:
    """Write a buffer to disk atomically.

    Args:
        file_path: Target file path
        data: Bytes to write

    Returns:
        The written path
    """
    with atomic_write(file_path) as f:
        f.write(data)
    log.debug("Output written", path=str(file_path), size=format_size(len(data)))
    return file_path


def format_size(size: int | float) -> str:
    """Format byte size as human-readable string.

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"
